# zatca/services/xml_common.py
# -*- coding: utf-8 -*-
"""
Nodos UBL compartidos entre factura (Invoice) y nota de crédito (CreditNote):

- Partes (proveedor / cliente)
- TaxTotal y LegalMonetaryTotal
- Líneas (InvoiceLine / CreditNoteLine)
- ICV (Invoice Counter Value) y UUID del comprobante
"""
from __future__ import annotations

import secrets
import uuid as uuid_lib
from decimal import Decimal
from typing import Optional

from lxml import etree

from zatca.conf import ZatcaConfig
from zatca.records import InvoiceRecord, LineItem, Party
from zatca.utils import format_amount, format_quantity, to_decimal

NS_INVOICE = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
NS_CREDIT_NOTE = "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2"
NS_CAC = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
NS_CBC = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"
NS_EXT = "urn:oasis:names:specification:ubl:schema:xsd:CommonExtensionComponents-2"

UBL_VERSION = "2.1"
INVOICE_TYPE_CODE = "388"
CREDIT_NOTE_TYPE_CODE = "381"

# Valores por defecto de dirección cuando el registro no los trae
ADDRESS_DEFAULTS = {
    "street": "Street",
    "building": "1234",
    "city": "City",
    "postal_code": "12345",
    "region": "Region",
}


def nsmap_for(default_ns: str) -> dict:
    return {
        None: default_ns,
        "cac": NS_CAC,
        "cbc": NS_CBC,
        "ext": NS_EXT,
    }


def cbc(parent: etree._Element, name: str, text: Optional[str] = None, **attrs) -> etree._Element:
    node = etree.SubElement(parent, f"{{{NS_CBC}}}{name}", **attrs)
    if text is not None:
        node.text = text
    return node


def cac(parent: etree._Element, name: str) -> etree._Element:
    return etree.SubElement(parent, f"{{{NS_CAC}}}{name}")


def amount(parent: etree._Element, name: str, value, currency: str) -> etree._Element:
    """<cbc:NAME currencyID="SAR">0.00</cbc:NAME>"""
    return cbc(parent, name, format_amount(value), currencyID=currency)


def generate_icv() -> str:
    """Contador por documento: 4 bytes aleatorios en hex."""
    return secrets.token_hex(4)


def resolve_uuid(invoice: InvoiceRecord) -> str:
    return invoice.uuid or str(uuid_lib.uuid4())


def resolve_icv(invoice: InvoiceRecord, config: ZatcaConfig) -> str:
    """
    ICV del render actual.

    Se reutiliza el del registro si existe; si no, se genera uno nuevo.
    Solo queda guardado en el registro cuando config.cache_icv está activo
    (ver build_*_xml).
    """
    return invoice.icv or generate_icv()


def profile_id(invoice: InvoiceRecord, config: ZatcaConfig) -> str:
    if abs(to_decimal(invoice.total_amount)) >= config.clearance_threshold:
        return "reporting:1.0"
    return "standard:reporting:1.0"


def build_party(parent: etree._Element, tag: str, party: Party, config: ZatcaConfig, *, tax_fallback: Optional[str] = None) -> None:
    """
    cac:AccountingSupplierParty / cac:AccountingCustomerParty.

    `tax_fallback` se usa cuando la parte no tiene número tributario
    (clientes sin registro de IVA -> 'NA').
    """
    tax_number = party.tax_number or tax_fallback

    wrapper = cac(parent, tag)
    node = cac(wrapper, "Party")

    identification = cac(node, "PartyIdentification")
    cbc(identification, "ID", tax_number)

    party_name = cac(node, "PartyName")
    cbc(party_name, "Name", party.name)

    address = cac(node, "PostalAddress")
    cbc(address, "StreetName", party.street or ADDRESS_DEFAULTS["street"])
    cbc(address, "BuildingNumber", party.building or ADDRESS_DEFAULTS["building"])
    cbc(address, "CityName", party.city or ADDRESS_DEFAULTS["city"])
    cbc(address, "PostalZone", party.postal_code or ADDRESS_DEFAULTS["postal_code"])
    cbc(address, "CountrySubentity", party.region or ADDRESS_DEFAULTS["region"])
    country = cac(address, "Country")
    cbc(country, "IdentificationCode", party.country or config.country_code)

    tax_scheme_node = cac(node, "PartyTaxScheme")
    cbc(tax_scheme_node, "CompanyID", tax_number)
    scheme = cac(tax_scheme_node, "TaxScheme")
    cbc(scheme, "ID", "VAT")


def _maybe_abs(value: Decimal, absolute: bool) -> Decimal:
    return abs(value) if absolute else value


def build_totals(parent: etree._Element, invoice: InvoiceRecord, config: ZatcaConfig, *, absolute: bool = False) -> None:
    """
    cac:TaxTotal + cac:LegalMonetaryTotal.

    total_amount incluye IVA; la base imponible es total_amount - vat_amount.
    Las notas de crédito se expresan en valor absoluto (absolute=True).
    """
    currency = config.currency
    total = to_decimal(invoice.total_amount)
    vat = to_decimal(invoice.vat_amount)
    taxable = _maybe_abs(total - vat, absolute)
    total = _maybe_abs(total, absolute)
    vat = _maybe_abs(vat, absolute)

    tax_total = cac(parent, "TaxTotal")
    amount(tax_total, "TaxAmount", vat, currency)
    subtotal = cac(tax_total, "TaxSubtotal")
    amount(subtotal, "TaxableAmount", taxable, currency)
    amount(subtotal, "TaxAmount", vat, currency)
    category = cac(subtotal, "TaxCategory")
    cbc(category, "ID", "S")
    cbc(category, "Percent", format_amount(config.vat_rate))
    scheme = cac(category, "TaxScheme")
    cbc(scheme, "ID", "VAT")

    monetary = cac(parent, "LegalMonetaryTotal")
    amount(monetary, "LineExtensionAmount", taxable, currency)
    amount(monetary, "TaxExclusiveAmount", taxable, currency)
    amount(monetary, "TaxInclusiveAmount", total, currency)
    amount(monetary, "PayableAmount", total, currency)


def build_line(
    parent: etree._Element,
    line_tag: str,
    quantity_tag: str,
    index: int,
    item: LineItem,
    config: ZatcaConfig,
    *,
    absolute: bool = False,
) -> None:
    """Una línea del comprobante (InvoiceLine o CreditNoteLine)."""
    currency = config.currency
    quantity = to_decimal(item.quantity)
    unit_price = to_decimal(item.unit_price)
    tax_amount = to_decimal(item.tax_amount)
    line_extension = quantity * unit_price

    line = cac(parent, line_tag)
    cbc(line, "ID", str(index))
    cbc(
        line,
        quantity_tag,
        format_quantity(_maybe_abs(quantity, absolute)),
        unitCode=item.unit_code or "EA",
    )
    amount(line, "LineExtensionAmount", _maybe_abs(line_extension, absolute), currency)

    tax_total = cac(line, "TaxTotal")
    amount(tax_total, "TaxAmount", _maybe_abs(tax_amount, absolute), currency)
    amount(
        tax_total,
        "RoundingAmount",
        _maybe_abs(line_extension + tax_amount, absolute),
        currency,
    )

    item_node = cac(line, "Item")
    cbc(item_node, "Name", item.name)
    category = cac(item_node, "ClassifiedTaxCategory")
    cbc(category, "ID", "S")
    cbc(category, "Percent", format_amount(item.tax_rate))
    scheme = cac(category, "TaxScheme")
    cbc(scheme, "ID", "VAT")

    price = cac(line, "Price")
    amount(price, "PriceAmount", unit_price, currency)


def serialize(root: etree._Element) -> str:
    xml_bytes = etree.tostring(
        root,
        encoding="UTF-8",
        xml_declaration=True,
        pretty_print=False,
    )
    return xml_bytes.decode("utf-8")

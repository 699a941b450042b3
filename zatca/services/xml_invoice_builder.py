# zatca/services/xml_invoice_builder.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Optional

from lxml import etree

from zatca.conf import ZatcaConfig
from zatca.errors import DocumentGenerationError, DocumentValidationError, ZatcaError
from zatca.records import InvoiceRecord
from zatca.services.validation import validate_invoice
from zatca.services.xml_common import (
    INVOICE_TYPE_CODE,
    NS_INVOICE,
    UBL_VERSION,
    build_line,
    build_party,
    build_totals,
    cac,
    cbc,
    nsmap_for,
    profile_id,
    resolve_icv,
    resolve_uuid,
    serialize,
)
from zatca.utils import format_date, format_time

logger = logging.getLogger("zatca.xml")


def _build_delivery(root: etree._Element, invoice: InvoiceRecord) -> None:
    """cac:Delivery con la fecha de suministro (opcional)."""
    if not invoice.supply_date:
        return
    delivery = cac(root, "Delivery")
    cbc(delivery, "ActualDeliveryDate", format_date(invoice.supply_date))


def build_invoice_xml(invoice: InvoiceRecord, config: Optional[ZatcaConfig] = None) -> str:
    """
    Construye el XML UBL 2.1 de una factura (InvoiceTypeCode 388).

    Efectos sobre el registro, solo si el XML se generó completo:
    - invoice.uuid: se asigna si no existía.
    - invoice.icv: se guarda si config.cache_icv está activo.

    El ICV se regenera en cada llamada salvo que el registro ya traiga uno,
    por lo que dos renders del mismo registro difieren solo en ese valor.
    """
    config = config or ZatcaConfig()
    validate_invoice(invoice, error_class=DocumentValidationError)

    logger.debug("Construyendo XML para factura %s", invoice.document_number)

    try:
        uuid = resolve_uuid(invoice)
        icv = resolve_icv(invoice, config)

        root = etree.Element(f"{{{NS_INVOICE}}}Invoice", nsmap=nsmap_for(NS_INVOICE))

        cbc(root, "UBLVersionID", UBL_VERSION)
        cbc(root, "ProfileID", profile_id(invoice, config))
        cbc(root, "ID", invoice.document_number)
        cbc(root, "UUID", uuid)
        cbc(root, "IssueDate", format_date(invoice.issue_date))
        cbc(root, "IssueTime", format_time(invoice.issue_date))
        cbc(root, "InvoiceTypeCode", INVOICE_TYPE_CODE)
        cbc(root, "DocumentCurrencyCode", config.currency)
        cbc(root, "TaxCurrencyCode", config.currency)

        icv_ref = cac(root, "AdditionalDocumentReference")
        cbc(icv_ref, "ID", "ICV")
        cbc(icv_ref, "UUID", icv)

        build_party(root, "AccountingSupplierParty", invoice.supplier, config)
        build_party(root, "AccountingCustomerParty", invoice.customer, config, tax_fallback="NA")
        _build_delivery(root, invoice)
        build_totals(root, invoice, config)

        for index, item in enumerate(invoice.items, start=1):
            build_line(root, "InvoiceLine", "InvoicedQuantity", index, item, config)

        xml = serialize(root)
    except ZatcaError:
        raise
    except Exception as exc:
        logger.exception("Error construyendo XML de factura %s", invoice.document_number)
        raise DocumentGenerationError(
            f"Failed to generate invoice XML: {exc}",
        ) from exc

    invoice.uuid = uuid
    if config.cache_icv:
        invoice.icv = icv

    logger.debug("XML de factura %s generado (uuid=%s)", invoice.document_number, uuid)
    return xml

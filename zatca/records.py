# zatca/records.py
# -*- coding: utf-8 -*-
"""
Modelo de datos del pipeline ZATCA.

InvoiceRecord es un agregado mutable: el llamador lo crea y cada etapa del
pipeline lo enriquece (icv, xml, hash, signed_xml, estado, respuesta).
La persistencia es responsabilidad del llamador.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

Monto = Union[Decimal, float, int, str]


class CertificateType:
    COMPLIANCE = "compliance"
    PRODUCTION = "production"

    SIGNING_TYPES = (COMPLIANCE, PRODUCTION)


class KeyMaterialType:
    """Tipos de material aceptados por el almacén de llaves."""

    CSR = "csr"
    PRIVATE = "private"
    PUBLIC = "public"
    COMPLIANCE = CertificateType.COMPLIANCE
    PRODUCTION = CertificateType.PRODUCTION

    ALL = (CSR, PRIVATE, PUBLIC, COMPLIANCE, PRODUCTION)


class ZatcaStatus:
    UNSUBMITTED = "unsubmitted"
    SUBMITTED = "submitted"
    UNKNOWN = "unknown"


@dataclass
class Party:
    name: Optional[str] = None
    tax_number: Optional[str] = None
    street: Optional[str] = None
    building: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


@dataclass
class LineItem:
    name: Optional[str] = None
    quantity: Optional[Monto] = None
    unit_price: Optional[Monto] = None
    tax_rate: Optional[Monto] = None
    tax_amount: Optional[Monto] = None
    total_amount: Optional[Monto] = None
    unit_code: str = "EA"

    REQUIRED_FIELDS = (
        "name",
        "quantity",
        "unit_price",
        "tax_rate",
        "tax_amount",
        "total_amount",
    )


@dataclass
class InvoiceRecord:
    document_number: Optional[str] = None
    issue_date: Optional[Union[datetime, date, str]] = None
    supplier: Party = field(default_factory=Party)
    customer: Party = field(default_factory=Party)
    total_amount: Optional[Monto] = None
    vat_amount: Optional[Monto] = None
    items: List[LineItem] = field(default_factory=list)
    uuid: Optional[str] = None
    supply_date: Optional[Union[datetime, date, str]] = None

    # Campos derivados (los llena el pipeline)
    icv: Optional[str] = None
    xml: Optional[str] = None
    hash: Optional[str] = None
    signed_xml: Optional[str] = None
    zatca_status: str = ZatcaStatus.UNSUBMITTED
    clearance_status: Optional[str] = None
    request_id: Optional[str] = None
    zatca_response: Optional[Dict[str, Any]] = None

    ROOT_ELEMENT = "Invoice"

    @property
    def is_credit_note(self) -> bool:
        return False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InvoiceRecord":
        """
        Construye el registro desde el formato camelCase usado por los
        integradores (invoiceNumber, supplierName, items[].unitPrice, ...).
        """
        items = [
            LineItem(
                name=raw.get("name"),
                quantity=raw.get("quantity"),
                unit_price=raw.get("unitPrice"),
                tax_rate=raw.get("taxRate"),
                tax_amount=raw.get("taxAmount"),
                total_amount=raw.get("totalAmount"),
                unit_code=raw.get("unitCode") or "EA",
            )
            for raw in (data.get("items") or [])
        ]
        return cls(
            document_number=data.get("invoiceNumber"),
            issue_date=data.get("issueDate"),
            supply_date=data.get("supplyDate"),
            supplier=_party_from_dict(data, "supplier"),
            customer=_party_from_dict(data, "customer"),
            total_amount=data.get("totalAmount"),
            vat_amount=data.get("vatAmount"),
            items=items,
            uuid=data.get("uuid"),
        )


def _party_from_dict(data: Dict[str, Any], prefix: str) -> Party:
    return Party(
        name=data.get(f"{prefix}Name"),
        tax_number=data.get(f"{prefix}TaxNumber"),
        street=data.get(f"{prefix}Street"),
        building=data.get(f"{prefix}Building"),
        city=data.get(f"{prefix}City"),
        postal_code=data.get(f"{prefix}PostalCode"),
        region=data.get(f"{prefix}Region"),
    )


@dataclass
class BillingReference:
    """Referencia a la factura original que corrige una nota de crédito."""

    document_number: str
    uuid: Optional[str]
    issue_date: Union[datetime, date, str]


@dataclass
class CreditNoteRecord(InvoiceRecord):
    billing_reference: Optional[BillingReference] = None
    reason: Optional[str] = None

    ROOT_ELEMENT = "CreditNote"

    @property
    def is_credit_note(self) -> bool:
        return True


@dataclass
class CertificateInfo:
    certificate_id: Optional[str] = None
    type: Optional[str] = None
    token: Optional[str] = None


@dataclass
class Organization:
    """Datos del sujeto del CSR de cumplimiento."""

    name: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    email: Optional[str] = None
    unit: str = "IT Department"
    country: str = "SA"

    REQUIRED_FIELDS = ("name", "city", "region", "email")


@dataclass
class CsrResult:
    certificate_id: str
    csr: str
    private_key: str
    public_key: str

# zatca/services/validation.py
# -*- coding: utf-8 -*-
"""
Validaciones previas a la construcción del XML.

Se reportan TODOS los campos faltantes en un solo ValidationError,
no solo el primero.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Type

from zatca.errors import ValidationError
from zatca.records import CertificateInfo, CertificateType, InvoiceRecord, LineItem
from zatca.utils import to_decimal

logger = logging.getLogger("zatca.validation")

# (nombre reportado, función de acceso)
INVOICE_REQUIRED_FIELDS = (
    ("document_number", lambda inv: inv.document_number),
    ("issue_date", lambda inv: inv.issue_date),
    ("supplier.name", lambda inv: inv.supplier and inv.supplier.name),
    ("supplier.tax_number", lambda inv: inv.supplier and inv.supplier.tax_number),
    ("customer.name", lambda inv: inv.customer and inv.customer.name),
    ("total_amount", lambda inv: inv.total_amount),
    ("vat_amount", lambda inv: inv.vat_amount),
)


def missing_invoice_fields(invoice: InvoiceRecord) -> List[str]:
    """
    Lista de campos faltantes del registro y de sus líneas.

    - Campos de cabecera: deben ser "truthy".
    - Campos de línea: solo se exige presencia (0 es válido).
    """
    missing = [name for name, getter in INVOICE_REQUIRED_FIELDS if not getter(invoice)]

    items = invoice.items
    if not isinstance(items, (list, tuple)) or len(items) == 0:
        missing.append("items")
        return missing

    for index, item in enumerate(items, start=1):
        if not isinstance(item, LineItem):
            missing.append(f"items[{index}]")
            continue
        for field_name in LineItem.REQUIRED_FIELDS:
            if getattr(item, field_name, None) is None:
                missing.append(f"items[{index}].{field_name}")

    return missing


def validate_invoice(
    invoice: InvoiceRecord,
    error_class: Type[ValidationError] = ValidationError,
) -> None:
    missing = missing_invoice_fields(invoice)
    if missing:
        logger.warning(
            "Comprobante %s incompleto, faltan: %s",
            invoice.document_number,
            missing,
        )
        raise error_class(
            f"Missing required invoice fields: {', '.join(missing)}",
            missing_fields=missing,
        )


def validate_certificate(cert_info: CertificateInfo) -> None:
    missing = []
    if not cert_info.certificate_id:
        missing.append("certificate_id")
    if not cert_info.type:
        missing.append("type")
    if missing:
        raise ValidationError(
            f"Missing required certificate fields: {', '.join(missing)}",
            missing_fields=missing,
        )

    if cert_info.type not in CertificateType.SIGNING_TYPES:
        raise ValidationError(
            'Certificate type must be either "compliance" or "production", '
            f"got {cert_info.type!r}"
        )


def inconsistent_totals(invoice: InvoiceRecord, tolerance: Decimal = Decimal("0.01")) -> List[str]:
    """
    Diferencias entre los totales del comprobante y sus líneas.

    No se aplica al construir el XML; sirve para verificar los datos de
    entrada. Las líneas se consideran con IVA incluido:

    - total_amount == suma de items.total_amount
    - vat_amount == suma de items.tax_amount
    - por línea: tax_amount ~= quantity * unit_price * tax_rate / 100
    - por línea: total_amount ~= quantity * unit_price + tax_amount
    """
    problems: List[str] = []

    items_total = sum((to_decimal(item.total_amount) for item in invoice.items), Decimal("0"))
    items_tax = sum((to_decimal(item.tax_amount) for item in invoice.items), Decimal("0"))

    if abs(items_total - to_decimal(invoice.total_amount)) > tolerance:
        problems.append(f"total_amount {invoice.total_amount} != items {items_total}")
    if abs(items_tax - to_decimal(invoice.vat_amount)) > tolerance:
        problems.append(f"vat_amount {invoice.vat_amount} != items {items_tax}")

    for index, item in enumerate(invoice.items, start=1):
        net = to_decimal(item.quantity) * to_decimal(item.unit_price)
        tax = to_decimal(item.tax_amount)
        expected_tax = net * to_decimal(item.tax_rate) / Decimal("100")
        if abs(expected_tax - tax) > tolerance:
            problems.append(f"items[{index}].tax_amount {tax} != {expected_tax}")
        if abs(net + tax - to_decimal(item.total_amount)) > tolerance:
            problems.append(f"items[{index}].total_amount {item.total_amount} != {net + tax}")

    return problems

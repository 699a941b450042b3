# zatca/services/workflow_credit_note.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import copy
import logging
import uuid as uuid_lib
from dataclasses import replace
from decimal import Decimal
from typing import Optional, Tuple

from django.utils import timezone

from zatca.conf import ZatcaConfig
from zatca.errors import ValidationError, ZatcaError
from zatca.records import (
    BillingReference,
    CertificateInfo,
    CreditNoteRecord,
    InvoiceRecord,
    LineItem,
)
from zatca.services.client import ZatcaClient, ZatcaResponse
from zatca.services.key_store import FileKeyStore
from zatca.services.signer import KeyStore
from zatca.services.validation import validate_certificate
from zatca.services.workflow import prepare_signed_document, record_response
from zatca.utils import to_decimal

logger = logging.getLogger("zatca.workflow")

CREDIT_NOTE_PREFIX = "CN-"


def _negative(value) -> Decimal:
    return -abs(to_decimal(value))


def _negate_item(item: LineItem) -> LineItem:
    """Cantidad, IVA y total negativos; precio unitario y tasa sin cambio."""
    return replace(
        item,
        quantity=_negative(item.quantity),
        tax_amount=_negative(item.tax_amount),
        total_amount=_negative(item.total_amount),
    )


def build_credit_note(
    original: InvoiceRecord,
    reason: Optional[str] = None,
    *,
    document_number: Optional[str] = None,
) -> CreditNoteRecord:
    """
    Deriva una nota de crédito completa de la factura original.

    - Número CN-<número original> (o document_number si se indica).
    - UUID nuevo; fechas de emisión y suministro = ahora.
    - total_amount, vat_amount y por línea quantity/tax_amount/total_amount
      en negativo.
    - Referencia a número, UUID y fecha de emisión de la original.
    """
    if not original.document_number or not original.issue_date:
        missing = [
            name
            for name, value in (
                ("document_number", original.document_number),
                ("issue_date", original.issue_date),
            )
            if not value
        ]
        raise ValidationError(
            f"Original invoice is missing: {', '.join(missing)}",
            missing_fields=missing,
        )

    try:
        now = timezone.now()
        credit_note = CreditNoteRecord(
            uuid=str(uuid_lib.uuid4()),
            document_number=document_number or f"{CREDIT_NOTE_PREFIX}{original.document_number}",
            issue_date=now,
            supply_date=now,
            supplier=copy.deepcopy(original.supplier),
            customer=copy.deepcopy(original.customer),
            total_amount=_negative(original.total_amount),
            vat_amount=_negative(original.vat_amount),
            items=[_negate_item(item) for item in original.items],
            billing_reference=BillingReference(
                document_number=original.document_number,
                uuid=original.uuid,
                issue_date=original.issue_date,
            ),
            reason=reason,
        )
    except (ValueError, TypeError) as exc:
        raise ValidationError(
            f"Original invoice {original.document_number} has invalid amounts: {exc}"
        ) from exc

    logger.debug(
        "Nota de crédito %s derivada de factura %s",
        credit_note.document_number,
        original.document_number,
    )
    return credit_note


def create_credit_note(
    original: InvoiceRecord,
    reason: Optional[str],
    cert_info: CertificateInfo,
    *,
    config: Optional[ZatcaConfig] = None,
    client: Optional[ZatcaClient] = None,
    key_store: Optional[KeyStore] = None,
) -> Tuple[CreditNoteRecord, ZatcaResponse]:
    """
    Crea, firma y reporta la nota de crédito de una factura.

    Las notas de crédito siempre van por reporting (nunca clearance).
    """
    config = config or ZatcaConfig.from_settings()
    client = client or ZatcaClient(config)
    key_store = key_store or FileKeyStore.from_config(config)

    logger.info("Creando nota de crédito para factura %s", original.document_number)

    try:
        validate_certificate(cert_info)
        credit_note = build_credit_note(original, reason)

        signed_xml = prepare_signed_document(
            credit_note,
            cert_info,
            config=config,
            key_store=key_store,
        )

        response = client.report_invoice(
            credit_note.hash,
            credit_note.uuid,
            signed_xml,
            cert_info.token,
        )

        record_response(credit_note, response)

    except ZatcaError as exc:
        logger.error(
            "Fallo la nota de crédito de la factura %s: %s",
            original.document_number,
            exc,
        )
        raise
    except Exception as exc:
        logger.exception(
            "Error inesperado creando nota de crédito de la factura %s",
            original.document_number,
        )
        raise ZatcaError(f"Failed to create credit note: {exc}", details=exc) from exc

    logger.info(
        "Nota de crédito %s reportada (requestID=%s)",
        credit_note.document_number,
        response.request_id,
    )
    return credit_note, response

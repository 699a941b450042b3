# zatca/services/xml_credit_note_builder.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import List, Optional

from lxml import etree

from zatca.conf import ZatcaConfig
from zatca.errors import DocumentGenerationError, DocumentValidationError, ZatcaError
from zatca.records import CreditNoteRecord
from zatca.services.validation import missing_invoice_fields
from zatca.services.xml_common import (
    CREDIT_NOTE_TYPE_CODE,
    NS_CREDIT_NOTE,
    UBL_VERSION,
    build_line,
    build_party,
    build_totals,
    cac,
    cbc,
    nsmap_for,
    resolve_icv,
    resolve_uuid,
    serialize,
)
from zatca.utils import format_date, format_time

logger = logging.getLogger("zatca.xml")


def _missing_credit_note_fields(credit_note: CreditNoteRecord) -> List[str]:
    missing = missing_invoice_fields(credit_note)
    reference = credit_note.billing_reference
    if reference is None:
        missing.append("billing_reference")
    else:
        if not reference.document_number:
            missing.append("billing_reference.document_number")
        if not reference.issue_date:
            missing.append("billing_reference.issue_date")
    return missing


def _build_billing_reference(root: etree._Element, credit_note: CreditNoteRecord) -> None:
    """
    cac:BillingReference -> factura original (número, UUID y fecha).
    """
    reference = credit_note.billing_reference
    billing = cac(root, "BillingReference")
    doc_ref = cac(billing, "InvoiceDocumentReference")
    cbc(doc_ref, "ID", reference.document_number)
    if reference.uuid:
        cbc(doc_ref, "UUID", reference.uuid)
    cbc(doc_ref, "IssueDate", format_date(reference.issue_date))


def build_credit_note_xml(
    credit_note: CreditNoteRecord,
    config: Optional[ZatcaConfig] = None,
) -> str:
    """
    Construye el XML UBL 2.1 de una nota de crédito (CreditNoteTypeCode 381).

    Los montos del registro vienen negativos (ver build_credit_note); en el
    XML se expresan en valor absoluto, el tipo 381 ya indica el sentido.
    """
    config = config or ZatcaConfig()

    missing = _missing_credit_note_fields(credit_note)
    if missing:
        raise DocumentValidationError(
            f"Missing required credit note fields: {', '.join(missing)}",
            missing_fields=missing,
        )

    reference = credit_note.billing_reference
    logger.debug(
        "Construyendo XML de nota de crédito %s (factura original %s)",
        credit_note.document_number,
        reference.document_number,
    )

    try:
        uuid = resolve_uuid(credit_note)
        icv = resolve_icv(credit_note, config)
        reason = credit_note.reason or f"Credit note for invoice {reference.document_number}"

        root = etree.Element(
            f"{{{NS_CREDIT_NOTE}}}CreditNote",
            nsmap=nsmap_for(NS_CREDIT_NOTE),
        )

        cbc(root, "UBLVersionID", UBL_VERSION)
        cbc(root, "ProfileID", "reporting:1.0")
        cbc(root, "ID", credit_note.document_number)
        cbc(root, "UUID", uuid)
        cbc(root, "IssueDate", format_date(credit_note.issue_date))
        cbc(root, "IssueTime", format_time(credit_note.issue_date))
        cbc(root, "CreditNoteTypeCode", CREDIT_NOTE_TYPE_CODE)
        cbc(root, "Note", reason)
        cbc(root, "DocumentCurrencyCode", config.currency)
        cbc(root, "TaxCurrencyCode", config.currency)

        icv_ref = cac(root, "AdditionalDocumentReference")
        cbc(icv_ref, "ID", "ICV")
        cbc(icv_ref, "UUID", icv)

        pih_ref = cac(root, "AdditionalDocumentReference")
        cbc(pih_ref, "ID", "PIH")
        cbc(
            pih_ref,
            "DocumentDescription",
            f"Credit note for invoice {reference.document_number}",
        )

        _build_billing_reference(root, credit_note)

        build_party(root, "AccountingSupplierParty", credit_note.supplier, config)
        build_party(root, "AccountingCustomerParty", credit_note.customer, config, tax_fallback="NA")
        build_totals(root, credit_note, config, absolute=True)

        for index, item in enumerate(credit_note.items, start=1):
            build_line(
                root,
                "CreditNoteLine",
                "CreditedQuantity",
                index,
                item,
                config,
                absolute=True,
            )

        xml = serialize(root)
    except ZatcaError:
        raise
    except Exception as exc:
        logger.exception(
            "Error construyendo XML de nota de crédito %s",
            credit_note.document_number,
        )
        raise DocumentGenerationError(
            f"Failed to generate credit note XML: {exc}",
        ) from exc

    credit_note.uuid = uuid
    if config.cache_icv:
        credit_note.icv = icv

    logger.debug("XML de nota de crédito %s generado", credit_note.document_number)
    return xml

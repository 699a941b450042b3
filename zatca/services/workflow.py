# zatca/services/workflow.py
# -*- coding: utf-8 -*-
"""
Orquestación del envío de comprobantes a ZATCA.

Flujo (síncrono):
- Validar registro y certificado.
- Construir XML (si no existe en el registro).
- Calcular hash SHA-256 (si no existe).
- Firmar XML (si no existe).
- Decidir clearance vs reporting según el umbral configurado.
- Enviar UNA vez y guardar requestID, respuesta y estado en el registro.

XML, hash y firma quedan cacheados en el registro; el envío NO es
idempotente: llamar de nuevo vuelve a enviar.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from zatca.conf import ZatcaConfig
from zatca.errors import ValidationError, ZatcaError
from zatca.records import CertificateInfo, InvoiceRecord, ZatcaStatus
from zatca.services.client import ZatcaClient, ZatcaResponse
from zatca.services.hashing import calculate_invoice_hash
from zatca.services.key_store import FileKeyStore
from zatca.services.signer import KeyStore, sign_invoice_xml
from zatca.services.validation import validate_certificate, validate_invoice
from zatca.services.xml_credit_note_builder import build_credit_note_xml
from zatca.services.xml_invoice_builder import build_invoice_xml
from zatca.utils import Numero, to_decimal

logger = logging.getLogger("zatca.workflow")


class SubmissionRoute(str, Enum):
    CLEARANCE = "clearance"
    REPORTING = "reporting"


def route_for(total_amount: Numero, threshold: Numero) -> SubmissionRoute:
    """
    Clearance si |total| >= umbral (inclusivo); reporting en otro caso.
    """
    if abs(to_decimal(total_amount)) >= to_decimal(threshold):
        return SubmissionRoute.CLEARANCE
    return SubmissionRoute.REPORTING


def render_document_xml(record: InvoiceRecord, config: ZatcaConfig) -> str:
    """XML sin firma según el tipo de registro (factura o nota de crédito)."""
    if record.is_credit_note:
        return build_credit_note_xml(record, config)
    return build_invoice_xml(record, config)


def prepare_signed_document(
    record: InvoiceRecord,
    cert_info: CertificateInfo,
    *,
    config: ZatcaConfig,
    key_store: KeyStore,
) -> str:
    """
    Completa xml, hash y signed_xml en el registro, solo los que falten.

    Cada campo se asigna después de que su cálculo termina sin error.
    Devuelve el XML firmado.
    """
    if not record.xml:
        record.xml = render_document_xml(record, config)
        logger.debug("XML generado para comprobante %s", record.document_number)

    if not record.hash:
        record.hash = calculate_invoice_hash(record.xml)
        logger.debug("Hash calculado para %s: %s", record.document_number, record.hash)

    if not record.signed_xml:
        record.signed_xml = sign_invoice_xml(record, record.xml, cert_info, key_store)
        logger.debug("XML firmado para comprobante %s", record.document_number)

    return record.signed_xml


def record_response(record: InvoiceRecord, response: ZatcaResponse) -> None:
    record.zatca_status = ZatcaStatus.SUBMITTED
    record.request_id = response.request_id
    record.zatca_response = response.raw


def submit_invoice(
    invoice: InvoiceRecord,
    cert_info: CertificateInfo,
    *,
    config: Optional[ZatcaConfig] = None,
    client: Optional[ZatcaClient] = None,
    key_store: Optional[KeyStore] = None,
) -> ZatcaResponse:
    """
    Procesa y envía un comprobante a ZATCA (clearance o reporting).

    Retorna la ZatcaResponse del envío. Cualquier falla se propaga como
    ZatcaError (o subclase); las fallas no tipificadas se envuelven con
    código UNKNOWN_ERR conservando la causa.
    """
    config = config or ZatcaConfig.from_settings()
    client = client or ZatcaClient(config)
    key_store = key_store or FileKeyStore.from_config(config)

    logger.info("Iniciando envío de comprobante %s", invoice.document_number)

    try:
        validate_invoice(invoice)
        validate_certificate(cert_info)

        signed_xml = prepare_signed_document(
            invoice,
            cert_info,
            config=config,
            key_store=key_store,
        )

        route = route_for(invoice.total_amount, config.clearance_threshold)
        logger.info(
            "Comprobante %s total=%s umbral=%s -> %s",
            invoice.document_number,
            invoice.total_amount,
            config.clearance_threshold,
            route.value,
        )

        if route is SubmissionRoute.CLEARANCE:
            response = client.clear_invoice(invoice.hash, invoice.uuid, signed_xml, cert_info.token)
            invoice.clearance_status = ZatcaStatus.SUBMITTED
        else:
            response = client.report_invoice(invoice.hash, invoice.uuid, signed_xml, cert_info.token)

        record_response(invoice, response)

    except ZatcaError as exc:
        logger.error("Fallo el envío del comprobante %s: %s", invoice.document_number, exc)
        raise
    except Exception as exc:
        logger.exception("Error inesperado enviando comprobante %s", invoice.document_number)
        raise ZatcaError(f"Failed to submit invoice: {exc}", details=exc) from exc

    logger.info(
        "Comprobante %s enviado (requestID=%s)",
        invoice.document_number,
        response.request_id,
    )
    return response


def check_invoice_status(
    invoice: InvoiceRecord,
    *,
    config: Optional[ZatcaConfig] = None,
    client: Optional[ZatcaClient] = None,
    token: Optional[str] = None,
) -> ZatcaResponse:
    """
    Consulta el estado de un comprobante ya enviado y lo guarda en
    invoice.zatca_status ('unknown' si ZATCA no devuelve estado).
    """
    config = config or ZatcaConfig.from_settings()
    client = client or ZatcaClient(config)

    request_id = invoice.request_id or (invoice.zatca_response or {}).get("requestID")
    if not request_id:
        raise ValidationError(
            "Invoice has no valid ZATCA response with requestID",
            missing_fields=["request_id"],
        )

    logger.info("Consultando estado de comprobante %s", invoice.document_number)

    try:
        response = client.check_status(request_id, token=token)
    except ZatcaError:
        raise
    except Exception as exc:
        logger.exception("Error inesperado consultando estado de %s", invoice.document_number)
        raise ZatcaError(f"Failed to check invoice status: {exc}", details=exc) from exc

    invoice.zatca_status = response.status or ZatcaStatus.UNKNOWN
    logger.info(
        "Comprobante %s estado=%s",
        invoice.document_number,
        invoice.zatca_status,
    )
    return response

# zatca/services/tlv.py
# -*- coding: utf-8 -*-
"""
Codificación TLV (Tag-Length-Value) del resumen de la factura para el QR.

Cada campo: [1 byte tag][1 byte longitud][valor UTF-8 o binario].
Orden fijo de tags:

    1. Nombre del vendedor
    2. Número de registro de IVA del vendedor
    3. Fecha/hora ISO-8601 UTC (sin fracciones)
    4. Total con IVA (2 decimales)
    5. Monto de IVA (2 decimales)
    6. Firma (solo si el registro tiene signed_xml)

La longitud es de un byte: valores de más de 255 bytes se rechazan,
nunca se truncan.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple, Union

from zatca.conf import ZatcaConfig
from zatca.errors import QRGenerationError, SigningError, ZatcaError
from zatca.records import InvoiceRecord
from zatca.services.signer import extract_signature_value
from zatca.utils import format_amount, format_iso_datetime

logger = logging.getLogger("zatca.qr")

TAG_SELLER_NAME = 1
TAG_VAT_NUMBER = 2
TAG_TIMESTAMP = 3
TAG_TOTAL = 4
TAG_VAT_AMOUNT = 5
TAG_SIGNATURE = 6

MAX_VALUE_LENGTH = 255


def encode_field(tag: int, value: Union[str, bytes]) -> bytes:
    """Un campo TLV. La longitud es en bytes, no en caracteres."""
    if isinstance(value, str):
        data = value.encode("utf-8")
    elif isinstance(value, (bytes, bytearray)):
        data = bytes(value)
    else:
        raise QRGenerationError(
            f"Tag {tag}: el valor debe ser texto o bytes, no {type(value).__name__}"
        )

    if len(data) > MAX_VALUE_LENGTH:
        raise QRGenerationError(
            f"Tag {tag}: el valor ocupa {len(data)} bytes (máximo {MAX_VALUE_LENGTH})"
        )
    return bytes((tag, len(data))) + data


def decode_tlv(data: bytes) -> Dict[int, bytes]:
    """Inverso de encode_field sobre un buffer completo."""
    fields: Dict[int, bytes] = {}
    pos = 0
    while pos < len(data):
        if pos + 2 > len(data):
            raise QRGenerationError(f"Buffer TLV truncado en la posición {pos}")
        tag, length = data[pos], data[pos + 1]
        start = pos + 2
        end = start + length
        if end > len(data):
            raise QRGenerationError(f"Tag {tag}: longitud {length} excede el buffer")
        fields[tag] = data[start:end]
        pos = end
    return fields


def _signature_value(invoice: InvoiceRecord, config: ZatcaConfig) -> Union[str, bytes]:
    """
    Valor del tag 6.

    - "hash" (por defecto): el hash del contenido, como texto. Es un
      marcador documentado, no la firma criptográfica.
    - "signature": bytes crudos de ds:SignatureValue del XML firmado.
    """
    if config.tlv_signature_source == "signature":
        signature = extract_signature_value(invoice.signed_xml)
        if len(signature) > MAX_VALUE_LENGTH:
            raise QRGenerationError(
                f"Tag {TAG_SIGNATURE}: la firma ocupa {len(signature)} bytes "
                f"(llave RSA de {len(signature) * 8} bits); el máximo es "
                f"{MAX_VALUE_LENGTH}. Con llaves de 2048 bits o más use "
                "tlv_signature_source='hash'."
            )
        return signature
    return invoice.hash or ""


def _fields(invoice: InvoiceRecord, config: ZatcaConfig) -> List[Tuple[int, Union[str, bytes]]]:
    fields: List[Tuple[int, Union[str, bytes]]] = [
        (TAG_SELLER_NAME, invoice.supplier.name),
        (TAG_VAT_NUMBER, invoice.supplier.tax_number),
        (TAG_TIMESTAMP, format_iso_datetime(invoice.issue_date)),
        (TAG_TOTAL, format_amount(invoice.total_amount)),
        (TAG_VAT_AMOUNT, format_amount(invoice.vat_amount)),
    ]
    if invoice.signed_xml:
        fields.append((TAG_SIGNATURE, _signature_value(invoice, config)))
    return fields


def generate_tlv_data(invoice: InvoiceRecord, config: Optional[ZatcaConfig] = None) -> bytes:
    """Buffer TLV de la factura (5 campos, o 6 si está firmada)."""
    config = config or ZatcaConfig()
    logger.debug("Generando TLV para comprobante %s", invoice.document_number)

    try:
        buffer = b"".join(encode_field(tag, value) for tag, value in _fields(invoice, config))
    except QRGenerationError:
        logger.error("TLV inválido para comprobante %s", invoice.document_number)
        raise
    except (SigningError, ValueError, TypeError, AttributeError) as exc:
        logger.error(
            "No se pudo codificar TLV para comprobante %s: %s",
            invoice.document_number,
            exc,
        )
        message = exc.message if isinstance(exc, ZatcaError) else str(exc)
        raise QRGenerationError(f"Failed to generate TLV data: {message}") from exc

    return buffer

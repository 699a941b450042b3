# zatca/services/hashing.py
from __future__ import annotations

import hashlib
import logging
from typing import Union

from zatca.errors import HashingError

logger = logging.getLogger("zatca.signing")


def calculate_invoice_hash(xml: Union[str, bytes]) -> str:
    """
    SHA-256 (hex en minúsculas) del contenido exacto del XML.

    Función pura: no vuelve a generar el XML ni modifica el registro.
    Quien necesite guardar el hash lo asigna explícitamente
    (invoice.hash = calculate_invoice_hash(xml)).
    """
    if not isinstance(xml, (str, bytes, bytearray)):
        logger.error("Tipo de contenido no soportado para hash: %s", type(xml).__name__)
        raise HashingError(
            f"Failed to calculate invoice hash: se esperaba str o bytes, no {type(xml).__name__}"
        )

    try:
        data = xml.encode("utf-8") if isinstance(xml, str) else bytes(xml)
        digest = hashlib.sha256(data).hexdigest()
    except (TypeError, ValueError, UnicodeEncodeError) as exc:
        logger.exception("Error calculando hash del comprobante: %s", exc)
        raise HashingError(f"Failed to calculate invoice hash: {exc}") from exc

    logger.debug("Hash del comprobante calculado: %s", digest)
    return digest

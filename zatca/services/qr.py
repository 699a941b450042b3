# zatca/services/qr.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import base64
import logging
from typing import Optional

from reportlab.graphics import renderSVG
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib.units import mm

from zatca.conf import ZatcaConfig
from zatca.errors import QRGenerationError
from zatca.records import InvoiceRecord
from zatca.services.tlv import generate_tlv_data

logger = logging.getLogger("zatca.qr")

QR_SIZE = 50 * mm


def qr_payload(invoice: InvoiceRecord, config: Optional[ZatcaConfig] = None) -> str:
    """Contenido del QR: base64 del buffer TLV, sin envoltorio adicional."""
    return base64.b64encode(generate_tlv_data(invoice, config)).decode("ascii")


def _build_qr_drawing(contenido: str, size: float = QR_SIZE) -> Drawing:
    qr = QrCodeWidget(contenido, barLevel="M", barBorder=0)
    bounds = qr.getBounds()
    width = bounds[2] - bounds[0]
    height = bounds[3] - bounds[1]
    drawing = Drawing(
        size,
        size,
        transform=[size / width, 0, 0, size / height, 0, 0],
    )
    drawing.add(qr)
    return drawing


def generate_qr_code(invoice: InvoiceRecord, config: Optional[ZatcaConfig] = None) -> str:
    """
    QR del comprobante como data URL SVG (data:image/svg+xml;base64,...).
    """
    payload = qr_payload(invoice, config)

    try:
        svg = renderSVG.drawToString(_build_qr_drawing(payload))
    except Exception as exc:
        logger.exception("Error generando QR para comprobante %s", invoice.document_number)
        raise QRGenerationError(f"Failed to generate QR code: {exc}") from exc

    if isinstance(svg, str):
        svg = svg.encode("utf-8")

    logger.debug("QR generado para comprobante %s", invoice.document_number)
    return "data:image/svg+xml;base64," + base64.b64encode(svg).decode("ascii")

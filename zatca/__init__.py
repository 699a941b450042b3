# zatca/__init__.py
"""
Facturación electrónica ZATCA (fase 2) como app Django reutilizable.

- services.xml_*_builder: XML UBL 2.1 de factura y nota de crédito.
- services.hashing: hash SHA-256 del XML.
- services.signer: firma XMLDSig envuelta (exc-c14n, RSA-SHA256).
- services.tlv / services.qr: resumen TLV y QR del comprobante.
- services.client: cliente REST del API de ZATCA.
- services.certificate: CSR y llaves para el certificado de cumplimiento.
- services.workflow*: envío (clearance/reporting), estado y notas de crédito.
"""

__version__ = "1.0.0"

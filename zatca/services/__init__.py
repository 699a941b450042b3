# zatca/services/__init__.py
"""
Servicios del pipeline ZATCA:

- validation: validaciones previas al XML.
- xml_common / xml_invoice_builder / xml_credit_note_builder: construcción de XML.
- hashing: hash SHA-256 del XML.
- key_store: llaves y certificados PEM en disco.
- certificate: generación de llaves y CSR de cumplimiento.
- signer: firma XMLDSig envuelta.
- tlv / qr: resumen TLV y código QR.
- client: cliente REST del API de ZATCA.
- workflow / workflow_credit_note: orquestación de envío y notas de crédito.
"""

# zatca/services/signer.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import base64
import copy
import hashlib
import logging
from typing import Optional, Protocol, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from lxml import etree

from zatca.errors import SigningError, ZatcaError
from zatca.records import CertificateInfo, InvoiceRecord, KeyMaterialType

logger = logging.getLogger("zatca.signing")

NAMESPACES = {
    "ds": "http://www.w3.org/2000/09/xmldsig#",
}

ALG_EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"
ALG_ENVELOPED = "http://www.w3.org/2000/09/xmldsig#enveloped-signature"
ALG_SHA256 = "http://www.w3.org/2001/04/xmlenc#sha256"
ALG_RSA_SHA256 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha256"

# Elementos firmables, en orden de prioridad de detección
SIGNABLE_ELEMENTS = ("CreditNote", "Invoice")

PEM_CERT_HEADER = "-----BEGIN CERTIFICATE-----"
PEM_CERT_FOOTER = "-----END CERTIFICATE-----"


class KeyStore(Protocol):
    def load(self, certificate_id: str, material_type: str) -> str:
        ...


def _ds(name: str) -> str:
    return f"{{{NAMESPACES['ds']}}}{name}"


def _canonicalize(element: etree._Element) -> bytes:
    """
    Canonicalización C14N EXCLUSIVA (exc-c14n), sin comentarios.
    """
    return etree.tostring(
        element,
        method="c14n",
        exclusive=True,
        with_comments=False,
    )


def _pem_body(pem: str) -> str:
    """Certificado PEM sin encabezado, pie ni saltos de línea."""
    return (
        pem.replace(PEM_CERT_HEADER, "")
        .replace(PEM_CERT_FOOTER, "")
        .replace("\r", "")
        .replace("\n", "")
        .strip()
    )


def _load_key_material(
    key_store: KeyStore,
    cert_info: CertificateInfo,
) -> Tuple[rsa.RSAPrivateKey, str]:
    """
    Carga desde el almacén:
    - la llave privada RSA (tipo 'private')
    - el certificado PEM del tipo indicado en cert_info (compliance/production)

    Devuelve (private_key, cuerpo_base64_del_certificado).
    """
    private_pem = key_store.load(cert_info.certificate_id, KeyMaterialType.PRIVATE)
    cert_pem = key_store.load(cert_info.certificate_id, cert_info.type)

    try:
        private_key = serialization.load_pem_private_key(
            private_pem.encode("utf-8"),
            password=None,
        )
    except (ValueError, TypeError) as exc:
        raise SigningError(f"Llave privada ilegible: {exc}") from exc

    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise SigningError(
            f"Se requiere una llave RSA para RSA-SHA256, no {type(private_key).__name__}"
        )

    try:
        x509.load_pem_x509_certificate(cert_pem.encode("utf-8"))
    except ValueError as exc:
        raise SigningError(f"Certificado ilegible: {exc}") from exc

    return private_key, _pem_body(cert_pem)


def find_signable_element(root: etree._Element) -> etree._Element:
    """
    Ubica el elemento a firmar (CreditNote o Invoice) por nombre local,
    no asume que sea la raíz del documento.
    """
    for name in SIGNABLE_ELEMENTS:
        if etree.QName(root).localname == name:
            return root
        found = root.xpath("//*[local-name()=$name]", name=name)
        if found:
            return found[0]
    raise SigningError(
        "El documento no contiene un elemento Invoice ni CreditNote para firmar."
    )


def _reference_uri(root: etree._Element, target: etree._Element) -> str:
    """
    URI de la referencia: "" si se firma la raíz; si no, "#<Id>" asignando
    un Id al elemento cuando no lo tiene.
    """
    if target is root:
        return ""
    node_id = target.get("Id")
    if node_id is None:
        node_id = etree.QName(target).localname.lower()
        target.set("Id", node_id)
    return f"#{node_id}"


def sign_invoice_xml(
    invoice: InvoiceRecord,
    xml: str,
    cert_info: CertificateInfo,
    key_store: KeyStore,
) -> str:
    """
    Firma el XML con una firma XMLDSig envuelta (enveloped).

    - CanonicalizationMethod: exc-c14n
    - SignatureMethod: RSA-SHA256
    - DigestMethod: SHA-256
    - KeyInfo: X509Certificate sin encabezados PEM ni saltos de línea

    Orden de hijos en <ds:Signature>:
        1. <ds:SignedInfo>
        2. <ds:SignatureValue>
        3. <ds:KeyInfo>

    La firma se agrega como último hijo del elemento firmado; el digest se
    calcula antes de agregarla (equivalente a la transformación enveloped).
    """
    if not xml:
        raise SigningError("El XML a firmar no puede estar vacío.")

    logger.debug(
        "Firmando comprobante %s con certificado %s (%s)",
        invoice.document_number,
        cert_info.certificate_id,
        cert_info.type,
    )

    try:
        private_key, cert_b64 = _load_key_material(key_store, cert_info)

        try:
            root = etree.fromstring(xml.encode("utf-8"))
        except etree.XMLSyntaxError as exc:
            raise SigningError(f"XML mal formado al intentar firmar: {exc}") from exc

        target = find_signable_element(root)
        target_name = etree.QName(target).localname
        if target_name != invoice.ROOT_ELEMENT:
            logger.warning(
                "Comprobante %s: se esperaba %s y el XML contiene %s; se firma %s",
                invoice.document_number,
                invoice.ROOT_ELEMENT,
                target_name,
                target_name,
            )

        uri = _reference_uri(root, target)

        # Digest del elemento SIN firma
        target_digest = hashlib.sha256(_canonicalize(target)).digest()

        signature = etree.Element(_ds("Signature"), nsmap={"ds": NAMESPACES["ds"]})

        signed_info = etree.SubElement(signature, _ds("SignedInfo"))
        etree.SubElement(
            signed_info,
            _ds("CanonicalizationMethod"),
            Algorithm=ALG_EXC_C14N,
        )
        etree.SubElement(
            signed_info,
            _ds("SignatureMethod"),
            Algorithm=ALG_RSA_SHA256,
        )

        reference = etree.SubElement(signed_info, _ds("Reference"), URI=uri)
        transforms = etree.SubElement(reference, _ds("Transforms"))
        etree.SubElement(transforms, _ds("Transform"), Algorithm=ALG_ENVELOPED)
        etree.SubElement(transforms, _ds("Transform"), Algorithm=ALG_EXC_C14N)
        etree.SubElement(reference, _ds("DigestMethod"), Algorithm=ALG_SHA256)
        digest_value = etree.SubElement(reference, _ds("DigestValue"))
        digest_value.text = base64.b64encode(target_digest).decode("ascii")

        signature_value = etree.SubElement(signature, _ds("SignatureValue"))

        key_info = etree.SubElement(signature, _ds("KeyInfo"))
        x509_data = etree.SubElement(key_info, _ds("X509Data"))
        x509_cert = etree.SubElement(x509_data, _ds("X509Certificate"))
        x509_cert.text = cert_b64

        target.append(signature)

        # SignedInfo canonicalizado ya dentro del documento final
        signed_info_c14n = _canonicalize(signed_info)
        signature_bytes = private_key.sign(
            signed_info_c14n,
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        signature_value.text = base64.b64encode(signature_bytes).decode("ascii")

        signed_xml = etree.tostring(
            root,
            encoding="UTF-8",
            xml_declaration=True,
            pretty_print=False,
        ).decode("utf-8")

    except ZatcaError as exc:
        logger.error("Error al firmar comprobante %s: %s", invoice.document_number, exc)
        if isinstance(exc, SigningError):
            raise
        raise SigningError(f"Failed to sign invoice: {exc.message}", details=exc.code) from exc
    except Exception as exc:
        logger.exception("Error al firmar comprobante %s", invoice.document_number)
        raise SigningError(f"Failed to sign invoice: {exc}") from exc

    logger.info(
        "XML firmado (RSA-SHA256, exc-c14n) para comprobante %s",
        invoice.document_number,
    )
    return signed_xml


def _find_signature(root: etree._Element) -> Optional[etree._Element]:
    return root.find(f".//{_ds('Signature')}")


def extract_signature_value(signed_xml: str) -> bytes:
    """Bytes crudos de <ds:SignatureValue> de un XML firmado."""
    try:
        root = etree.fromstring(signed_xml.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        raise SigningError(f"XML firmado mal formado: {exc}") from exc

    node = root.find(f".//{_ds('SignatureValue')}")
    if node is None or not (node.text or "").strip():
        raise SigningError("El XML no contiene ds:SignatureValue.")
    return base64.b64decode("".join(node.text.split()))


def verify_signed_xml(signed_xml: str) -> bool:
    """
    Verifica un XML firmado por sign_invoice_xml usando el certificado
    embebido en KeyInfo:

    - DigestValue == SHA-256(exc-c14n(elemento firmado sin ds:Signature))
    - SignatureValue válido sobre exc-c14n(SignedInfo)
    """
    root = etree.fromstring(signed_xml.encode("utf-8"))
    signature = _find_signature(root)
    if signature is None:
        return False

    signed_info = signature.find(_ds("SignedInfo"))
    reference = signed_info.find(_ds("Reference"))
    cert_text = signature.find(f".//{_ds('X509Certificate')}").text
    certificate = x509.load_der_x509_certificate(base64.b64decode(cert_text))

    signature_bytes = base64.b64decode(
        "".join(signature.find(_ds("SignatureValue")).text.split())
    )
    try:
        certificate.public_key().verify(
            signature_bytes,
            _canonicalize(signed_info),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature:
        return False

    unsigned_root = copy.deepcopy(root)
    unsigned_signature = _find_signature(unsigned_root)
    signed_parent = unsigned_signature.getparent()
    signed_parent.remove(unsigned_signature)

    uri = reference.get("URI") or ""
    if uri:
        matches = unsigned_root.xpath("//*[@Id=$id]", id=uri.lstrip("#"))
        if not matches:
            return False
        target = matches[0]
    else:
        target = unsigned_root

    expected = base64.b64encode(hashlib.sha256(_canonicalize(target)).digest()).decode("ascii")
    return expected == reference.find(_ds("DigestValue")).text

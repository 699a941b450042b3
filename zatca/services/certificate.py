# zatca/services/certificate.py
# -*- coding: utf-8 -*-
"""
Onboarding: generación del par de llaves RSA y del CSR de cumplimiento.

El CSR, la llave privada (PKCS#8) y la pública quedan en el almacén de
llaves bajo un mismo certificate_id (tipos 'csr', 'private', 'public').
El CSR luego se envía con ZatcaClient.request_compliance_certificate.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from django.utils import timezone

from zatca.errors import CertificateError, ErrorCode, ValidationError, ZatcaError
from zatca.records import CsrResult, KeyMaterialType, Organization

logger = logging.getLogger("zatca.certificate")

CSR_KEY_SIZE = 2048


class KeyMaterialStore(Protocol):
    def store(self, certificate_id: str, content: str, material_type: str) -> None:
        ...


def new_certificate_id() -> str:
    """Id basado en el instante actual, en milisegundos."""
    return str(int(timezone.now().timestamp() * 1000))


def _subject(organization: Organization) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, organization.name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization.name),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, organization.unit),
            x509.NameAttribute(NameOID.LOCALITY_NAME, organization.city),
            x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, organization.region),
            x509.NameAttribute(NameOID.COUNTRY_NAME, organization.country),
            x509.NameAttribute(NameOID.EMAIL_ADDRESS, organization.email),
        ]
    )


def generate_csr(
    organization: Organization,
    key_store: KeyMaterialStore,
    *,
    certificate_id: Optional[str] = None,
    key_size: int = CSR_KEY_SIZE,
) -> CsrResult:
    """
    Genera llave RSA + CSR firmado (SHA-256) y los guarda en key_store.

    Los tres materiales se guardan solo si todos se generaron bien.
    """
    missing = [name for name in Organization.REQUIRED_FIELDS if not getattr(organization, name)]
    if missing:
        raise ValidationError(
            f"Missing required organization fields: {', '.join(missing)}",
            missing_fields=missing,
        )

    certificate_id = certificate_id or new_certificate_id()
    logger.info("Generando CSR de cumplimiento para %s", organization.name)

    try:
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(_subject(organization))
            .sign(private_key, hashes.SHA256())
        )

        csr_pem = csr.public_bytes(serialization.Encoding.PEM).decode("ascii")
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")
    except (ValueError, TypeError) as exc:
        logger.error("No se pudo generar el CSR para %s: %s", organization.name, exc)
        raise CertificateError(
            f"Failed to generate CSR: {exc}",
            code=ErrorCode.CERTIFICATE_GENERATION_ERROR,
        ) from exc

    try:
        key_store.store(certificate_id, csr_pem, KeyMaterialType.CSR)
        key_store.store(certificate_id, private_pem, KeyMaterialType.PRIVATE)
        key_store.store(certificate_id, public_pem, KeyMaterialType.PUBLIC)
    except ZatcaError:
        raise
    except Exception as exc:
        logger.exception("Error guardando material del certificado %s", certificate_id)
        raise CertificateError(
            f"Failed to store CSR material: {exc}",
            code=ErrorCode.CERTIFICATE_STORAGE_ERROR,
        ) from exc

    logger.info("CSR generado (certificate_id=%s)", certificate_id)
    return CsrResult(
        certificate_id=certificate_id,
        csr=csr_pem,
        private_key=private_pem,
        public_key=public_pem,
    )

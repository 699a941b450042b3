# zatca/tests/fixtures.py
# -*- coding: utf-8 -*-
"""
Comprobantes y material criptográfico de prueba.
"""
from __future__ import annotations

import datetime
from typing import Dict, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from zatca.errors import CertificateError
from zatca.records import CertificateInfo, InvoiceRecord

SUPPLIER = {
    "supplierName": "Test Supplier Company",
    "supplierTaxNumber": "123456789012345",
    "supplierStreet": "Supplier Street",
    "supplierBuilding": "123",
    "supplierCity": "Riyadh",
    "supplierPostalCode": "12345",
    "supplierRegion": "Riyadh Region",
}

CUSTOMER = {
    "customerName": "Test Customer Company",
    "customerTaxNumber": "987654321098765",
    "customerStreet": "Customer Street",
    "customerBuilding": "456",
    "customerCity": "Jeddah",
    "customerPostalCode": "54321",
    "customerRegion": "Makkah Region",
}


def standard_invoice(**overrides) -> InvoiceRecord:
    """Factura estándar de 1150.00 SAR (va por clearance)."""
    data = {
        "uuid": "123e4567-e89b-12d3-a456-426614174000",
        "invoiceNumber": "INV-12345",
        "issueDate": datetime.datetime(2023, 4, 15, 12, 0, 0, tzinfo=datetime.timezone.utc),
        "supplyDate": datetime.datetime(2023, 4, 15, 12, 0, 0, tzinfo=datetime.timezone.utc),
        **SUPPLIER,
        **CUSTOMER,
        "totalAmount": 1150.00,
        "vatAmount": 150.00,
        "items": [
            {
                "name": "Product A",
                "quantity": 1,
                "unitCode": "EA",
                "unitPrice": 1000.00,
                "taxRate": 15,
                "taxAmount": 150.00,
                "totalAmount": 1150.00,
            }
        ],
    }
    data.update(overrides)
    return InvoiceRecord.from_dict(data)


def simplified_invoice(**overrides) -> InvoiceRecord:
    """Factura simplificada de 575.00 SAR (va por reporting)."""
    data = {
        "uuid": "223e4567-e89b-12d3-a456-426614174001",
        "invoiceNumber": "INV-12346",
        "issueDate": "2023-04-16T12:00:00Z",
        **SUPPLIER,
        "customerName": "Test Customer (B2C)",
        "totalAmount": 575.00,
        "vatAmount": 75.00,
        "items": [
            {
                "name": "Product B",
                "quantity": 1,
                "unitPrice": 500.00,
                "taxRate": 15,
                "taxAmount": 75.00,
                "totalAmount": 575.00,
            }
        ],
    }
    data.update(overrides)
    return InvoiceRecord.from_dict(data)


def multi_item_invoice(**overrides) -> InvoiceRecord:
    data = {
        "uuid": "423e4567-e89b-12d3-a456-426614174003",
        "invoiceNumber": "INV-12347",
        "issueDate": "2023-04-18T12:00:00Z",
        **SUPPLIER,
        **CUSTOMER,
        "totalAmount": 2300.00,
        "vatAmount": 300.00,
        "items": [
            {
                "name": "Product A",
                "quantity": 1,
                "unitPrice": 1000.00,
                "taxRate": 15,
                "taxAmount": 150.00,
                "totalAmount": 1150.00,
            },
            {
                "name": "Product B",
                "quantity": 2,
                "unitPrice": 500.00,
                "taxRate": 15,
                "taxAmount": 150.00,
                "totalAmount": 1150.00,
            },
        ],
    }
    data.update(overrides)
    return InvoiceRecord.from_dict(data)


def generate_key_material(key_size: int = 2048) -> Tuple[str, str]:
    """
    Llave RSA y certificado autofirmado, ambos en PEM.
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "SA"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Supplier Company"),
            x509.NameAttribute(NameOID.COMMON_NAME, "zatca-test"),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    cert_pem = certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
    return private_pem, cert_pem


class InMemoryKeyStore:
    """Almacén de llaves en memoria con el mismo contrato que FileKeyStore."""

    def __init__(self) -> None:
        self._data: Dict[Tuple[str, str], str] = {}

    def store(self, certificate_id: str, content: str, material_type: str) -> None:
        self._data[(certificate_id, material_type)] = content

    def load(self, certificate_id: str, material_type: str) -> str:
        try:
            return self._data[(certificate_id, material_type)]
        except KeyError as exc:
            raise CertificateError(
                f"Failed to load {material_type} certificate: {certificate_id} no existe"
            ) from exc


def key_store_with_certificate(
    certificate_id: str = "cert-001",
    cert_type: str = "compliance",
    key_size: int = 2048,
) -> InMemoryKeyStore:
    private_pem, cert_pem = generate_key_material(key_size)
    store = InMemoryKeyStore()
    store.store(certificate_id, private_pem, "private")
    store.store(certificate_id, cert_pem, cert_type)
    return store


def certificate_info(**overrides) -> CertificateInfo:
    values = {
        "certificate_id": "cert-001",
        "type": "compliance",
        "token": "test-token",
    }
    values.update(overrides)
    return CertificateInfo(**values)

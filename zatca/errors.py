# zatca/errors.py
# -*- coding: utf-8 -*-
"""
Taxonomía única de errores del pipeline ZATCA.

Cada etapa (validación, XML, hash, firma, QR, transporte) lanza una
subclase de ZatcaError con su código. Quien invoca el pipeline solo
necesita atrapar ZatcaError para ver cualquier falla.

Compatibilidad con la taxonomía anterior:
- Los errores de hash antes se reportaban como SIGN_ERR. Ahora usan
  HashingError (HASH_ERR), que hereda de SigningError para que los
  `except SigningError` existentes sigan funcionando.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional


class ErrorCode(str, Enum):
    # API
    API_ERROR = "API_ERR"
    API_CONNECTION_ERROR = "API_CONN_ERR"
    API_REQUEST_ERROR = "API_REQ_ERR"

    # Certificados / almacén de llaves
    CERTIFICATE_STORAGE_ERROR = "CERT_STORAGE_ERROR"
    CERTIFICATE_LOADING_ERROR = "CERT_LOADING_ERROR"
    CERTIFICATE_GENERATION_ERROR = "CERT_GEN_ERR"

    # XML
    XML_GENERATION_ERROR = "XML_GEN_ERR"
    XML_PARSING_ERROR = "XML_PARSE_ERR"

    # Hash / firma
    HASH_ERROR = "HASH_ERR"
    SIGNING_ERROR = "SIGN_ERR"

    # QR
    QRCODE_GENERATION_ERROR = "QR_GEN_ERR"

    VALIDATION_ERROR = "VALIDATION_ERR"
    UNKNOWN_ERROR = "UNKNOWN_ERR"


class ZatcaError(Exception):
    """Error base de operaciones ZATCA."""

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class ValidationError(ZatcaError):
    """Registro de entrada incompleto o mal formado."""

    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        super().__init__(message, details=missing_fields)
        self.missing_fields = list(missing_fields or [])


class DocumentGenerationError(ZatcaError):
    default_code = ErrorCode.XML_GENERATION_ERROR


class SigningError(ZatcaError):
    """Errores de carga de llaves, canonicalización o criptografía."""

    default_code = ErrorCode.SIGNING_ERROR


class HashingError(SigningError):
    default_code = ErrorCode.HASH_ERROR


class QRGenerationError(ZatcaError):
    default_code = ErrorCode.QRCODE_GENERATION_ERROR


class CertificateError(ZatcaError):
    """Errores del almacén de certificados/llaves (lectura, escritura o generación)."""

    default_code = ErrorCode.CERTIFICATE_LOADING_ERROR


class ApiError(ZatcaError):
    """Respuesta no exitosa o mal formada del API de ZATCA."""

    default_code = ErrorCode.API_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Any = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, code=code, details=details)
        self.status_code = status_code


class ApiConnectionError(ApiError):
    """Sin respuesta del servidor (timeout, DNS, conexión rechazada)."""

    default_code = ErrorCode.API_CONNECTION_ERROR


class ApiRequestError(ApiError):
    """La petición no pudo construirse o enviarse."""

    default_code = ErrorCode.API_REQUEST_ERROR


class DocumentValidationError(ValidationError, DocumentGenerationError):
    """
    Validación fallida al construir el XML.

    Es a la vez ValidationError (lista de campos faltantes) y
    DocumentGenerationError (falló la generación del documento).
    """

    default_code = ErrorCode.VALIDATION_ERROR

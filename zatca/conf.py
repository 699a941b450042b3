# zatca/conf.py
# -*- coding: utf-8 -*-
"""
Configuración explícita del pipeline ZATCA.

Los componentes reciben un ZatcaConfig en su construcción o como argumento;
ninguno lee settings al importar el módulo. ZatcaConfig.from_settings()
arma la configuración desde Django settings (nombres ZATCA_*).
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings

DEFAULT_BASE_URL = "https://gw-apic-gov.gazt.gov.sa/e-invoicing/developer-portal"

TLV_SIGNATURE_SOURCES = ("hash", "signature")


@dataclass(frozen=True)
class ZatcaConfig:
    """
    Configuración del pipeline.

    tlv_signature_source:
    - "hash" (por defecto): el tag 6 del QR lleva el hash del XML.
    - "signature": el tag 6 lleva los bytes crudos de ds:SignatureValue.
      Una firma RSA ocupa tantos bytes como la llave (2048 bits -> 256
      bytes) y el campo TLV admite 255, así que este modo solo sirve con
      llaves RSA menores a 2048 bits; con llaves mayores el QR falla con
      QRGenerationError.
    """

    # API
    base_url: str = DEFAULT_BASE_URL
    clearance_path: str = "/invoices/clearance/single"
    reporting_path: str = "/invoices/reporting/single"
    status_path: str = "/invoices/status"
    compliance_path: str = "/compliance"
    request_timeout: float = 30  # segundos
    ssl_verify: bool = True
    retry_max: int = 0
    user_agent: str = "ZatcaEInvoicing/1.0 (Python/requests)"

    # Reglas de negocio
    clearance_threshold: Decimal = Decimal("1000")
    currency: str = "SAR"
    country_code: str = "SA"
    vat_rate: Decimal = Decimal("15.00")

    # Llaves y certificados
    certificate_store_path: str = "./certificates"

    # Decisiones de compatibilidad
    cache_icv: bool = False
    tlv_signature_source: str = "hash"

    def __post_init__(self) -> None:
        # frozen: normalizamos vía object.__setattr__
        object.__setattr__(
            self, "clearance_threshold", Decimal(str(self.clearance_threshold))
        )
        object.__setattr__(self, "vat_rate", Decimal(str(self.vat_rate)))
        if self.tlv_signature_source not in TLV_SIGNATURE_SOURCES:
            raise ValueError(
                "tlv_signature_source debe ser 'hash' o 'signature', "
                f"no {self.tlv_signature_source!r}"
            )

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @classmethod
    def from_settings(cls, **overrides: Any) -> "ZatcaConfig":
        """
        Construye la configuración desde Django settings.

        Cada campo se busca como ZATCA_<CAMPO EN MAYÚSCULAS>
        (ej. ZATCA_CLEARANCE_THRESHOLD). Si settings no está configurado
        se usan los valores por defecto. `overrides` tiene prioridad.
        """
        values: Dict[str, Any] = {}
        if settings.configured:
            for f in fields(cls):
                setting_name = f"ZATCA_{f.name.upper()}"
                if hasattr(settings, setting_name):
                    values[f.name] = getattr(settings, setting_name)
        values.update(overrides)
        return cls(**values)

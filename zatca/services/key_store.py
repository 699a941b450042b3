# zatca/services/key_store.py
# -*- coding: utf-8 -*-
"""
Almacén de llaves y certificados PEM en disco.

Un archivo por material: <store_path>/<tipo>_<certificate_id>.pem
Tipos: csr, private, public, compliance, production.

El pipeline solo lee (load); store() existe para quien gestiona los
certificados fuera del pipeline.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from zatca.conf import ZatcaConfig
from zatca.errors import CertificateError, ErrorCode
from zatca.records import KeyMaterialType

logger = logging.getLogger("zatca.certificate")


class FileKeyStore:
    def __init__(self, store_path: Union[str, Path]):
        self.store_path = Path(store_path)

    @classmethod
    def from_config(cls, config: ZatcaConfig) -> "FileKeyStore":
        return cls(config.certificate_store_path)

    def path_for(self, certificate_id: str, material_type: str) -> Path:
        if material_type not in KeyMaterialType.ALL:
            raise CertificateError(
                f"Tipo de certificado inválido: {material_type!r}. "
                f"Permitidos: {', '.join(KeyMaterialType.ALL)}"
            )
        return self.store_path / f"{material_type}_{certificate_id}.pem"

    def load(self, certificate_id: str, material_type: str) -> str:
        path = self.path_for(certificate_id, material_type)
        logger.debug("Cargando %s de certificado %s", material_type, certificate_id)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error(
                "No se pudo leer %s del certificado %s (%s): %s",
                material_type,
                certificate_id,
                path,
                exc,
            )
            raise CertificateError(
                f"Failed to load {material_type} certificate: {exc}",
                code=ErrorCode.CERTIFICATE_LOADING_ERROR,
            ) from exc

    def store(self, certificate_id: str, content: str, material_type: str) -> None:
        path = self.path_for(certificate_id, material_type)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.error(
                "No se pudo guardar %s del certificado %s (%s): %s",
                material_type,
                certificate_id,
                path,
                exc,
            )
            raise CertificateError(
                f"Failed to store {material_type} certificate: {exc}",
                code=ErrorCode.CERTIFICATE_STORAGE_ERROR,
            ) from exc

        logger.debug("Guardado %s de certificado %s en %s", material_type, certificate_id, path)

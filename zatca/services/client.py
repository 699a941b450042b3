# zatca/services/client.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from zatca.conf import ZatcaConfig
from zatca.errors import ApiConnectionError, ApiError, ApiRequestError

logger = logging.getLogger("zatca.api")


@dataclass
class ZatcaResponse:
    """
    Contenedor de respuesta normalizada desde el API de ZATCA.
    """

    request_id: Optional[str]
    status: Optional[str]
    raw: Dict[str, Any]
    messages: List[Dict[str, Any]] = field(default_factory=list)


class ZatcaClient:
    """
    Cliente REST/JSON del API de ZATCA:

    - clearance: POST clearance_path  -> {requestID, clearanceStatus}
    - reporting: POST reporting_path  -> {requestID, reportingStatus}
    - estado:    GET  status_path/<requestID> -> {status}
    - onboarding: POST compliance_path (CSR) y compliance_path/verify (CSID)

    Todos los errores se devuelven como subclases de ApiError. Sin
    reintentos automáticos salvo que config.retry_max > 0.
    """

    def __init__(self, config: Optional[ZatcaConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or ZatcaConfig()
        self.timeout = self.config.request_timeout

        if session is None:
            session = requests.Session()
            session.verify = self.config.ssl_verify

            retry = Retry(
                total=self.config.retry_max,
                backoff_factor=1,
                status_forcelist=[502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("http://", adapter)
            session.mount("https://", adapter)

        self.session = session

        logger.debug(
            "ZatcaClient inicializado [base_url=%s, verify_ssl=%s, timeout=%s, retries=%s]",
            self.config.base_url,
            self.config.ssl_verify,
            self.timeout,
            self.config.retry_max,
        )

    # -------------------------
    # Infraestructura HTTP
    # -------------------------

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = self.config.url(path)
        logger.debug("API Request: %s %s", method, url)

        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(token),
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.error("Sin respuesta de ZATCA (%s %s): %s", method, url, exc)
            raise ApiConnectionError(f"ZATCA API No Response: {exc}") from exc
        except requests.RequestException as exc:
            logger.error("Error preparando petición a ZATCA (%s %s): %s", method, url, exc)
            raise ApiRequestError(f"ZATCA API Request Error: {exc}") from exc

        logger.debug("API Response: %s", response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = None

        if not 200 <= response.status_code < 300:
            logger.error(
                "ZATCA API respondió %s %s para %s %s",
                response.status_code,
                response.reason,
                method,
                url,
            )
            raise ApiError(
                f"ZATCA API Error: {response.status_code} - {response.reason}",
                details=data if data is not None else response.text,
                status_code=response.status_code,
            )

        if not isinstance(data, dict):
            raise ApiError(
                "ZATCA API Error: respuesta sin JSON válido",
                details=response.text,
                status_code=response.status_code,
            )

        errors = data.get("errors") or []
        if not isinstance(errors, (list, tuple)):
            errors = [errors]
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {"message": str(errors[0])}
            logger.error("ZATCA API Error: %s", errors)
            raise ApiError(
                f"ZATCA API Error: {first.get('message') or 'Unknown error'}",
                details=errors,
                status_code=response.status_code,
            )

        return data

    @staticmethod
    def _messages(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Extrae advertencias/mensajes de validación de la respuesta
        (validationResults.warningMessages / infoMessages).
        """
        results = data.get("validationResults") or {}
        if not isinstance(results, dict):
            raise ApiError(
                "ZATCA API Error: validationResults mal formado",
                details=data,
            )

        messages: List[Dict[str, Any]] = []
        for kind in ("infoMessages", "warningMessages"):
            entries = results.get(kind) or []
            if not isinstance(entries, (list, tuple)):
                entries = [entries]
            for entry in entries:
                if isinstance(entry, dict):
                    messages.append({"type": kind, **entry})
                else:
                    # mensajes sueltos en texto plano
                    messages.append({"type": kind, "message": str(entry)})
        return messages

    # -------------------------
    # Operaciones
    # -------------------------

    def _submit(
        self,
        path: str,
        status_key: str,
        invoice_hash: str,
        uuid: str,
        signed_xml: str,
        token: Optional[str],
    ) -> ZatcaResponse:
        payload = {
            "invoiceHash": invoice_hash,
            "uuid": uuid,
            "invoice": base64.b64encode(signed_xml.encode("utf-8")).decode("ascii"),
        }
        data = self._request("POST", path, token=token, payload=payload)
        return ZatcaResponse(
            request_id=data.get("requestID"),
            status=data.get(status_key),
            raw=data,
            messages=self._messages(data),
        )

    def clear_invoice(self, invoice_hash: str, uuid: str, signed_xml: str, token: Optional[str]) -> ZatcaResponse:
        """Clearance (total >= umbral): requiere aprobación previa de ZATCA."""
        logger.info("Enviando a clearance comprobante uuid=%s", uuid)
        response = self._submit(
            self.config.clearance_path,
            "clearanceStatus",
            invoice_hash,
            uuid,
            signed_xml,
            token,
        )
        logger.info(
            "Clearance aceptado uuid=%s requestID=%s estado=%s",
            uuid,
            response.request_id,
            response.status,
        )
        return response

    def report_invoice(self, invoice_hash: str, uuid: str, signed_xml: str, token: Optional[str]) -> ZatcaResponse:
        """Reporting (total < umbral y notas de crédito)."""
        logger.info("Reportando comprobante uuid=%s", uuid)
        response = self._submit(
            self.config.reporting_path,
            "reportingStatus",
            invoice_hash,
            uuid,
            signed_xml,
            token,
        )
        logger.info(
            "Reporting aceptado uuid=%s requestID=%s estado=%s",
            uuid,
            response.request_id,
            response.status,
        )
        return response

    def check_status(self, request_id: str, token: Optional[str] = None) -> ZatcaResponse:
        logger.info("Consultando estado de requestID=%s", request_id)
        data = self._request(
            "GET",
            f"{self.config.status_path.rstrip('/')}/{request_id}",
            token=token,
        )
        return ZatcaResponse(
            request_id=data.get("requestID") or request_id,
            status=data.get("status"),
            raw=data,
            messages=self._messages(data),
        )

    # -------------------------
    # Onboarding (certificado de cumplimiento)
    # -------------------------

    def request_compliance_certificate(self, csr: str, token: Optional[str] = None) -> ZatcaResponse:
        """
        POST compliance_path con el CSR en PEM.

        La respuesta trae el requestID con el que luego se verifica el
        certificado (verify_certificate) usando el CSID recibido.
        """
        logger.info("Solicitando certificado de cumplimiento a ZATCA")
        data = self._request(
            "POST",
            self.config.compliance_path,
            token=token,
            payload={"csr": csr},
        )
        response = ZatcaResponse(
            request_id=data.get("requestID"),
            status=data.get("dispositionMessage"),
            raw=data,
            messages=self._messages(data),
        )
        logger.info("Solicitud de certificado aceptada requestID=%s", response.request_id)
        return response

    def verify_certificate(self, request_id: str, csid: str, token: Optional[str] = None) -> ZatcaResponse:
        """POST compliance_path/verify con requestID y CSID."""
        logger.info("Verificando certificado requestID=%s", request_id)
        data = self._request(
            "POST",
            f"{self.config.compliance_path.rstrip('/')}/verify",
            token=token,
            payload={"requestID": request_id, "csid": csid},
        )
        response = ZatcaResponse(
            request_id=data.get("requestID") or request_id,
            status=data.get("dispositionMessage"),
            raw=data,
            messages=self._messages(data),
        )
        logger.info(
            "Certificado verificado requestID=%s (certificado=%s)",
            response.request_id,
            "sí" if data.get("certificate") else "no",
        )
        return response

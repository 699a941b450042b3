# zatca/apps.py
from __future__ import annotations

from django.apps import AppConfig


class ZatcaAppConfig(AppConfig):
    name = "zatca"
    verbose_name = "Facturación electrónica ZATCA"

# zatca/tests/test_utils.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import datetime
from decimal import Decimal

from django.test import SimpleTestCase

from zatca.utils import (
    format_amount,
    format_date,
    format_iso_datetime,
    format_quantity,
    format_time,
    to_decimal,
    to_utc,
)


class MontosTests(SimpleTestCase):
    def test_format_amount_siempre_dos_decimales(self):
        self.assertEqual(format_amount(1150), "1150.00")
        self.assertEqual(format_amount(1150.0), "1150.00")
        self.assertEqual(format_amount("75.5"), "75.50")

    def test_format_amount_redondea_half_up(self):
        # 2.675 como float es 2.67499999...; se redondea sobre su str()
        self.assertEqual(format_amount(2.675), "2.68")
        self.assertEqual(format_amount(Decimal("0.005")), "0.01")
        self.assertEqual(format_amount(Decimal("-0.005")), "-0.01")

    def test_format_amount_no_produce_cero_negativo(self):
        self.assertEqual(format_amount(Decimal("-0.001")), "0.00")

    def test_to_decimal_rechaza_valores_no_numericos(self):
        for valor in ("abc", None, True, float("nan"), float("inf")):
            with self.subTest(valor=valor):
                with self.assertRaises(ValueError):
                    to_decimal(valor)

    def test_format_quantity_sin_ceros_sobrantes(self):
        self.assertEqual(format_quantity(1), "1")
        self.assertEqual(format_quantity(1.0), "1")
        self.assertEqual(format_quantity(Decimal("2.50")), "2.5")
        self.assertEqual(format_quantity(-2), "-2")


class FechasTests(SimpleTestCase):
    def test_datetime_naive_se_asume_utc(self):
        valor = to_utc(datetime.datetime(2023, 4, 15, 12, 0, 0))
        self.assertEqual(valor.tzinfo, datetime.timezone.utc)
        self.assertEqual(valor.hour, 12)

    def test_datetime_con_zona_se_convierte_a_utc(self):
        riyadh = datetime.timezone(datetime.timedelta(hours=3))
        valor = datetime.datetime(2023, 4, 15, 15, 0, 0, tzinfo=riyadh)
        self.assertEqual(format_iso_datetime(valor), "2023-04-15T12:00:00Z")

    def test_cambio_de_dia_al_convertir(self):
        riyadh = datetime.timezone(datetime.timedelta(hours=3))
        valor = datetime.datetime(2023, 4, 16, 1, 30, 0, tzinfo=riyadh)
        self.assertEqual(format_date(valor), "2023-04-15")
        self.assertEqual(format_time(valor), "22:30:00")

    def test_texto_iso(self):
        self.assertEqual(format_iso_datetime("2023-04-16T12:00:00Z"), "2023-04-16T12:00:00Z")
        self.assertEqual(format_iso_datetime("2023-04-16"), "2023-04-16T00:00:00Z")

    def test_sin_fracciones_de_segundo(self):
        valor = datetime.datetime(2023, 4, 15, 12, 0, 0, 987654, tzinfo=datetime.timezone.utc)
        self.assertEqual(format_iso_datetime(valor), "2023-04-15T12:00:00Z")

    def test_fecha_invalida(self):
        with self.assertRaises(ValueError):
            to_utc("no-es-fecha")
        with self.assertRaises(TypeError):
            to_utc(12345)

# zatca/tests/test_validation.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from decimal import Decimal

from django.test import SimpleTestCase

from zatca.errors import ErrorCode, ValidationError
from zatca.records import CertificateInfo, LineItem
from zatca.services.validation import (
    inconsistent_totals,
    missing_invoice_fields,
    validate_certificate,
    validate_invoice,
)
from zatca.tests.fixtures import (
    certificate_info,
    multi_item_invoice,
    simplified_invoice,
    standard_invoice,
)


class ValidacionFacturaTests(SimpleTestCase):
    def test_factura_completa_no_tiene_faltantes(self):
        self.assertEqual(missing_invoice_fields(standard_invoice()), [])
        validate_invoice(standard_invoice())

    def test_cliente_sin_numero_tributario_es_valido(self):
        self.assertEqual(missing_invoice_fields(simplified_invoice()), [])

    def test_reporta_todos_los_faltantes(self):
        invoice = standard_invoice(invoiceNumber="", supplierName="", supplierTaxNumber=None)

        with self.assertRaises(ValidationError) as ctx:
            validate_invoice(invoice)

        faltantes = ctx.exception.missing_fields
        self.assertIn("document_number", faltantes)
        self.assertIn("supplier.name", faltantes)
        self.assertIn("supplier.tax_number", faltantes)
        self.assertEqual(ctx.exception.code, ErrorCode.VALIDATION_ERROR)

    def test_sin_items(self):
        invoice = standard_invoice(items=[])
        self.assertIn("items", missing_invoice_fields(invoice))

    def test_item_incompleto_se_reporta_por_posicion(self):
        invoice = standard_invoice()
        invoice.items.append(
            LineItem(
                name="Sin precio",
                quantity=1,
                unit_price=None,
                tax_rate=15,
                tax_amount=0,
                total_amount=0,
            )
        )
        self.assertEqual(missing_invoice_fields(invoice), ["items[2].unit_price"])

    def test_valores_cero_en_items_son_validos(self):
        invoice = standard_invoice()
        invoice.items[0].tax_rate = 0
        invoice.items[0].tax_amount = 0
        self.assertEqual(missing_invoice_fields(invoice), [])


class ValidacionCertificadoTests(SimpleTestCase):
    def test_certificado_valido(self):
        validate_certificate(certificate_info())
        validate_certificate(certificate_info(type="production"))

    def test_certificado_sin_tipo(self):
        with self.assertRaises(ValidationError):
            validate_certificate(CertificateInfo(certificate_id="cert-001", type=None))

    def test_tipo_de_certificado_desconocido(self):
        with self.assertRaises(ValidationError):
            validate_certificate(certificate_info(type="csr"))


class ConsistenciaTotalesTests(SimpleTestCase):
    """
    Los datos de prueba deben cumplir que los totales del comprobante
    coinciden con la suma de sus líneas.
    """

    def test_comprobantes_de_prueba_son_consistentes(self):
        for factory in (standard_invoice, simplified_invoice, multi_item_invoice):
            with self.subTest(factory=factory.__name__):
                self.assertEqual(inconsistent_totals(factory()), [])

    def test_detecta_total_que_no_cuadra(self):
        invoice = standard_invoice(totalAmount=1200.00)
        problemas = inconsistent_totals(invoice)
        self.assertEqual(len(problemas), 1)
        self.assertIn("total_amount", problemas[0])

    def test_detecta_iva_de_linea_incorrecto(self):
        invoice = standard_invoice()
        invoice.items[0].tax_amount = Decimal("100.00")
        problemas = inconsistent_totals(invoice)
        self.assertTrue(any(p.startswith("items[1].tax_amount") for p in problemas))

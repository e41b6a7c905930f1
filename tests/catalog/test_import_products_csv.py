"""
Store CSV import command.
"""

import csv
import tempfile
from decimal import Decimal
from io import StringIO
from pathlib import Path
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase

from catalog.management.commands.import_products_csv import validate_row
from catalog.models import Category, PriceChange, Product

HEADER = ["Handle", "Nombre", "Precio [El Guante]", "En inventario [El Guante]", "Categoria", "Descripción", "REF"]


def _row(**overrides) -> dict:
    row = {
        "Handle": "guante-pro",
        "Nombre": "Guante Pro",
        "Precio [El Guante]": "1.234,50",
        "En inventario [El Guante]": "7",
        "Categoria": "Guantes",
        "Descripción": "<p>Látex <strong>alemán</strong></p>",
        "REF": "GP-01",
    }
    row.update(overrides)
    return row


class ValidateRowTestCase(SimpleTestCase):
    def test_valid_row(self):
        row, errors = validate_row(_row(), line_no=2)

        self.assertEqual(errors, [])
        self.assertEqual(row.sku, "GP-01")
        self.assertEqual(row.price, Decimal("1234.50"))
        self.assertEqual(row.stock, 7)
        self.assertEqual(row.description, "Látex **alemán**")

    def test_invalid_row_collects_all_errors(self):
        row, errors = validate_row(
            _row(**{"Nombre": "", "Precio [El Guante]": "gratis", "En inventario [El Guante]": "-1", "Categoria": ""}),
            line_no=3,
        )

        self.assertIsNone(row)
        self.assertEqual(len(errors), 4)


class ImportCommandTestCase(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def _csv(self, rows: list[dict]) -> str:
        path = Path(self.tmp.name) / "productos.csv"
        with path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=HEADER)
            writer.writeheader()
            writer.writerows(rows)
        return str(path)

    def test_creates_then_updates(self):
        path = self._csv([_row(), _row(REF="PEL-1", Handle="pelota", Nombre="Pelota", Categoria="guantes")])
        out = StringIO()

        call_command("import_products_csv", path, stdout=out, stderr=StringIO())

        self.assertIn("created=2 updated=0", out.getvalue())
        self.assertEqual(Category.objects.count(), 1)
        product = Product.objects.get(sku="GP-01")
        self.assertEqual(product.price, Decimal("1234.50"))

        path = self._csv([_row(**{"Precio [El Guante]": "1100"})])
        out = StringIO()
        call_command("import_products_csv", path, stdout=out, stderr=StringIO())

        self.assertIn("created=0 updated=1", out.getvalue())
        product.refresh_from_db()
        self.assertEqual(product.price, Decimal("1100.00"))
        self.assertEqual(PriceChange.objects.get(product=product).reason, "csv import")

    def test_dry_run_writes_nothing(self):
        path = self._csv([_row(), _row(Nombre="")])
        out = StringIO()

        call_command("import_products_csv", path, "--dry-run", stdout=out, stderr=StringIO())

        self.assertIn("Read 1 valid rows, 1 invalid", out.getvalue())
        self.assertIn("Dry run", out.getvalue())
        self.assertFalse(Product.objects.exists())

    def test_missing_columns(self):
        path = Path(self.tmp.name) / "malo.csv"
        path.write_text("Nombre,Precio\nGuante,10\n", encoding="utf-8")

        with self.assertRaisesMessage(CommandError, "CSV is missing columns"):
            call_command("import_products_csv", str(path), stdout=StringIO())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command("import_products_csv", "/nonexistent/productos.csv", stdout=StringIO())

    def test_failed_batch_is_retried_row_by_row(self):
        path = self._csv(
            [
                _row(),
                _row(REF="PEL-1", Handle="pelota", Nombre="Pelota"),
                _row(REF="BAD", Handle="roto", Nombre="Guante roto"),
            ]
        )
        real_create = Product.objects.create

        def create(**kwargs):
            if kwargs["sku"] == "BAD":
                raise DatabaseError("value too long")
            return real_create(**kwargs)

        out, err = StringIO(), StringIO()
        with mock.patch.object(Product.objects, "create", side_effect=create) as create_mock:
            call_command("import_products_csv", path, "--retry-delay", "0", stdout=out, stderr=err)

        self.assertIn("created=2 updated=0 failed=1 invalid=0", out.getvalue())
        self.assertIn("retrying rows one by one", err.getvalue())
        self.assertIn("(BAD) failed: value too long", err.getvalue())
        self.assertEqual(set(Product.objects.values_list("sku", flat=True)), {"GP-01", "PEL-1"})
        # one batch pass, then GP-01 and PEL-1 once each and BAD three times
        self.assertEqual(create_mock.call_count, 3 + 2 + 3)
        self.assertEqual(Category.objects.count(), 1)

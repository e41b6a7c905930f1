from __future__ import annotations

import csv
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError, transaction
from django.utils.text import slugify

from catalog.models import Category, Product
from catalog.richtext import description_to_markdown

DEFAULT_BATCH_SIZE = 500
ROW_MAX_RETRIES = 3
LOW_STOCK_THRESHOLD = 5

COL_NAME = "Nombre"
COL_PRICE = "Precio [El Guante]"
COL_STOCK = "En inventario [El Guante]"
COL_CATEGORY = "Categoria"
COL_DESCRIPTION = "Descripción"
COL_HANDLE = "Handle"
COL_REF = "REF"


def _parse_decimal(value: str | None) -> Decimal | None:
    s = (value or "").strip().replace("$", "").replace(" ", "")
    if not s:
        return None
    # "1.234,50" (es-AR) and "1234.50" are both seen in exports.
    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    try:
        return Decimal(s).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def _parse_int(value: str | None) -> int | None:
    s = (value or "").strip()
    if not s:
        return 0
    try:
        return int(Decimal(s.replace(",", ".")))
    except InvalidOperation:
        return None


def _unique_slug_for_model(model, base: str, *, max_length: int = 200) -> str:
    base = (base or "").strip("-") or "item"
    base = base[:max_length]
    candidate = base
    suffix = 2
    while model.objects.filter(slug=candidate).exists():
        tail = f"-{suffix}"
        candidate = f"{base[: max_length - len(tail)]}{tail}"
        suffix += 1
    return candidate


@dataclass(frozen=True)
class ProductRow:
    line_no: int
    sku: str
    handle: str
    ref: str
    name: str
    price: Decimal
    stock: int
    category: str
    description: str


@dataclass
class ImportSummary:
    created: int = 0
    updated: int = 0
    failed: int = 0
    invalid: int = 0
    errors: list[str] = field(default_factory=list)


def validate_row(raw: dict, *, line_no: int) -> tuple[ProductRow | None, list[str]]:
    errors: list[str] = []

    name = (raw.get(COL_NAME) or "").strip()
    if not name:
        errors.append("missing name")

    price = _parse_decimal(raw.get(COL_PRICE))
    if price is None or price <= 0:
        errors.append("price must be a positive number")

    stock = _parse_int(raw.get(COL_STOCK))
    if stock is None or stock < 0:
        errors.append("stock must be a non-negative integer")

    category = (raw.get(COL_CATEGORY) or "").strip()
    if not category:
        errors.append("missing category")

    handle = (raw.get(COL_HANDLE) or "").strip()
    ref = (raw.get(COL_REF) or "").strip()
    sku = ref or handle or slugify(name)
    if not sku:
        errors.append("missing REF/Handle")

    if errors:
        return None, errors

    return (
        ProductRow(
            line_no=line_no,
            sku=sku[:64],
            handle=handle,
            ref=ref,
            name=name[:255],
            price=price,
            stock=int(stock),
            category=category,
            description=description_to_markdown(raw.get(COL_DESCRIPTION)),
        ),
        [],
    )


def read_rows(path: Path) -> tuple[list[ProductRow], list[str]]:
    rows: list[ProductRow] = []
    problems: list[str] = []
    # utf-8-sig: spreadsheet exports often carry a BOM.
    with path.open(newline="", encoding="utf-8-sig") as fh:
        reader = csv.DictReader(fh)
        missing = [c for c in (COL_NAME, COL_PRICE, COL_STOCK, COL_CATEGORY) if c not in (reader.fieldnames or [])]
        if missing:
            raise CommandError(f"CSV is missing columns: {', '.join(missing)}")
        # Header is line 1.
        for line_no, raw in enumerate(reader, start=2):
            row, errors = validate_row(raw, line_no=line_no)
            if row is None:
                problems.append(f"line {line_no}: {'; '.join(errors)}")
                continue
            rows.append(row)
    return rows, problems


class Command(BaseCommand):
    help = "Import or update products from a store CSV export (batched, with per-row retry)."

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to the CSV file.")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Validate rows and print the summary without writing.",
        )
        parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE)
        parser.add_argument(
            "--retry-delay",
            type=float,
            default=1.0,
            help="Base delay (seconds) for per-row retries; doubles each attempt.",
        )

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.exists():
            raise CommandError(f"File not found: {path}")

        batch_size = int(options.get("batch_size") or DEFAULT_BATCH_SIZE)
        if batch_size < 1:
            raise CommandError("--batch-size must be positive")
        self._retry_delay = max(0.0, float(options.get("retry_delay") or 0))
        self._category_cache: dict[str, Category] = {}

        rows, problems = read_rows(path)
        summary = ImportSummary(invalid=len(problems), errors=list(problems))
        self.stdout.write(f"Read {len(rows)} valid rows, {len(problems)} invalid")
        for p in problems:
            self.stderr.write(f"  skipped {p}")

        if options.get("dry_run"):
            self._write_rows_summary(rows)
            self.stdout.write(self.style.SUCCESS("Dry run: nothing written."))
            return

        for start in range(0, len(rows), batch_size):
            batch = rows[start : start + batch_size]
            created_before, updated_before = summary.created, summary.updated
            try:
                with transaction.atomic():
                    for row in batch:
                        self._upsert(row, summary)
            except DatabaseError as e:
                summary.created, summary.updated = created_before, updated_before
                self._category_cache.clear()
                self.stderr.write(
                    f"Batch {start // batch_size + 1} failed ({e}); retrying rows one by one"
                )
                self._retry_rows(batch, summary)
            self.stdout.write(f"Processed {min(start + batch_size, len(rows))}/{len(rows)}")

        self.stdout.write(
            self.style.SUCCESS(
                f"Import finished: created={summary.created} updated={summary.updated} "
                f"failed={summary.failed} invalid={summary.invalid}"
            )
        )
        self._write_inventory_summary()

    def _retry_rows(self, batch: list[ProductRow], summary: ImportSummary) -> None:
        for row in batch:
            for attempt in range(ROW_MAX_RETRIES):
                try:
                    with transaction.atomic():
                        self._upsert(row, summary)
                    break
                except DatabaseError as e:
                    self._category_cache.clear()
                    if attempt + 1 >= ROW_MAX_RETRIES:
                        summary.failed += 1
                        summary.errors.append(f"line {row.line_no}: {e}")
                        self.stderr.write(f"  line {row.line_no} ({row.sku}) failed: {e}")
                        break
                    time.sleep(self._retry_delay * (2**attempt))

    def _get_category(self, name: str) -> Category:
        key = name.casefold()
        cached = self._category_cache.get(key)
        if cached is not None:
            return cached

        category = Category.objects.filter(name__iexact=name).first()
        if category is None:
            category = Category.objects.create(
                name=name,
                slug=_unique_slug_for_model(Category, slugify(name) or "category"),
                is_active=True,
            )
        self._category_cache[key] = category
        return category

    def _upsert(self, row: ProductRow, summary: ImportSummary) -> None:
        category = self._get_category(row.category)
        product = Product.objects.filter(sku=row.sku).first()
        if product is None:
            Product.objects.create(
                sku=row.sku,
                handle=row.handle,
                ref=row.ref,
                name=row.name,
                slug=_unique_slug_for_model(Product, slugify(row.handle or row.name) or "product", max_length=255),
                description=row.description,
                category=category,
                price=row.price,
                stock=row.stock,
                is_active=True,
            )
            summary.created += 1
            return

        product.handle = row.handle
        product.ref = row.ref
        product.name = row.name
        product.description = row.description
        product.category = category
        product.price = row.price
        product.stock = row.stock
        product._price_change_reason = "csv import"
        product.save()
        summary.updated += 1

    def _write_rows_summary(self, rows: list[ProductRow]) -> None:
        total_value = sum((r.price * r.stock for r in rows), Decimal("0.00"))
        low = sum(1 for r in rows if 0 < r.stock < LOW_STOCK_THRESHOLD)
        out = sum(1 for r in rows if r.stock == 0)
        self.stdout.write(
            f"Products: {len(rows)} | inventory value: ${total_value} | "
            f"low stock (<{LOW_STOCK_THRESHOLD}): {low} | out of stock: {out}"
        )

    def _write_inventory_summary(self) -> None:
        total = 0
        total_value = Decimal("0.00")
        low = 0
        out = 0
        for price, stock in Product.objects.filter(is_active=True).values_list("price", "stock").iterator():
            total += 1
            total_value += price * stock
            if stock == 0:
                out += 1
            elif stock < LOW_STOCK_THRESHOLD:
                low += 1
        self.stdout.write(
            f"Products: {total} | inventory value: ${total_value} | "
            f"low stock (<{LOW_STOCK_THRESHOLD}): {low} | out of stock: {out}"
        )

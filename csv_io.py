"""
CSV import and export for the admin console

Bulk product upload expects these headers (any case, any order):
    name, price, description, stockQuantity, categoryName[, image]

Rows whose categoryName does not match an existing category (case-insensitive)
are skipped. Every other row becomes one create-product call; a failing row
does not stop the rest.
"""
import csv
import io
import json
from typing import Any, Callable, Dict, Iterable, List, Set

import structlog
from pydantic import BaseModel, Field

from api import ApiError
from records import Category

logger = structlog.get_logger(__name__)

REQUIRED_HEADERS = ["name", "price", "description", "stockquantity", "categoryname"]

SAMPLE_CSV = (
    "name,price,description,stockQuantity,categoryName,image\r\n"
    "Sample Figure,99.99,A cool sample figure,50,Anime Figures,https://example.com/image.png\r\n"
    "Sample Keychain,9.99,A sample keychain,200,Anime Keychains,https://example.com/image2.png\r\n"
)


class CsvFormatError(ValueError):
    pass


class CsvImportReport(BaseModel):
    created: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)

    def summary(self) -> str:
        text = f"{self.created} products processed."
        if self.by_category:
            text += " Breakdown: " + ", ".join(f"{count} in {name}" for name, count in self.by_category.items())
        return text


def _number(value: str, cast: Callable[[str], Any]) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError):
        return 0


def _rows(text: str) -> List[List[str]]:
    reader = csv.reader(io.StringIO(text))
    return [[field.strip() for field in row] for row in reader if "".join(row).strip()]


def import_products(text: str, categories: Iterable[Category], create_product: Callable[[Dict[str, Any]], Any]) -> CsvImportReport:
    rows = _rows(text or "")
    if not rows:
        raise CsvFormatError("CSV file is empty or has no data rows.")
    headers = [h.lower() for h in rows[0]]
    if not all(h in headers for h in REQUIRED_HEADERS):
        raise CsvFormatError(f"CSV must contain at least the following headers: {', '.join(REQUIRED_HEADERS)}")

    by_name = {c.name.lower(): c for c in categories}
    report = CsvImportReport()
    for row in rows[1:]:
        data = {h: (row[i] if i < len(row) else "") for i, h in enumerate(headers)}
        name = data.get("name", "")
        category = by_name.get(data.get("categoryname", "").lower())
        if category is None:
            logger.warning("csv_row_skipped", product=name, category=data.get("categoryname"))
            report.skipped.append(name)
            continue

        # int(float(...)) so "12.0" reads as 12
        stock = _number(data.get("stockquantity", ""), lambda v: int(float(v)))
        payload = {
            "name": name,
            "price": _number(data.get("price", ""), float),
            "description": data.get("description", ""),
            "stock_quantity": max(stock, 0),
            "category": category.id,
            "image": data.get("image") or None,
        }
        try:
            create_product(payload)
        except ApiError as e:
            logger.error("csv_row_failed", product=name, error=e.message)
            report.failed.append(name)
            continue
        report.created += 1
        report.by_category[category.name] = report.by_category.get(category.name, 0) + 1

    logger.info("csv_import_finished", created=report.created, skipped=len(report.skipped), failed=len(report.failed))
    return report


def export_csv(records: List[Dict[str, Any]]) -> str:
    """Backup format: header from the first record, nested values as JSON"""
    if not records:
        return ""
    headers = list(records[0].keys())
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\r\n")
    writer.writerow(headers)
    for record in records:
        row = []
        for h in headers:
            value = record.get(h)
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            elif isinstance(value, bool):
                value = "true" if value else "false"
            elif value is None:
                value = ""
            row.append(value)
        writer.writerow(row)
    return out.getvalue()


def _decode(value: str) -> Any:
    if value == "":
        return None
    if value[:1] in ("{", "["):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    if value in ("true", "false"):
        return value == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            pass
    return value


def _cell(header: str, value: str, keep: Set[str]) -> Any:
    if header in keep:
        return value or None
    return _decode(value)


def parse_backup_csv(text: str, text_fields: Iterable[str] = ()) -> List[Dict[str, Any]]:
    """Rows of a backup written by export_csv; columns in text_fields are not decoded"""
    keep = set(text_fields)
    rows = list(csv.reader(io.StringIO(text or "")))
    rows = [r for r in rows if "".join(r).strip()]
    if len(rows) < 2:
        raise CsvFormatError("CSV file is empty or has no data rows.")
    headers = rows[0]
    return [
        {h: _cell(h, row[i], keep) if i < len(row) else None for i, h in enumerate(headers)}
        for row in rows[1:]
    ]


def sample_csv() -> str:
    return SAMPLE_CSV

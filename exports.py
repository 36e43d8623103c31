"""
CSV and PDF renderings of products.
"""

import csv
import io
from typing import Iterable, Iterator

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

CSV_COLUMNS = [
    "_id",
    "name",
    "brand",
    "category",
    "price",
    "description",
    "image_url",
    "created_at",
    "updated_at",
    "reviews",
]


def _csv_row(product: dict) -> list:
    row = []
    for column in CSV_COLUMNS:
        value = product.get(column)
        if column == "reviews":
            value = len(value or [])
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        row.append("" if value is None else value)
    return row


def products_csv(products: Iterable[dict]) -> Iterator[str]:
    """Yield the CSV document one line at a time, header first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)

    def flush() -> str:
        chunk = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return chunk

    writer.writerow(CSV_COLUMNS)
    yield flush()
    for product in products:
        writer.writerow(_csv_row(product))
        yield flush()


def _wrap(text: str, width: int = 90) -> list:
    lines, line = [], ""
    for word in text.split():
        if line and len(line) + len(word) + 1 > width:
            lines.append(line)
            line = word
        else:
            line = f"{line} {word}" if line else word
    if line:
        lines.append(line)
    return lines


def product_pdf(product: dict) -> bytes:
    """Render a single product sheet and return the PDF bytes."""
    buffer = io.BytesIO()
    page_width, page_height = A4
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(str(product.get("name", "product")))
    left = 20 * mm
    y = page_height - 25 * mm

    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawString(left, y, str(product.get("name", "")))
    y -= 12 * mm

    pdf.setFont("Helvetica", 11)
    for label, key in (("Brand", "brand"), ("Category", "category"), ("Price", "price"), ("Image", "image_url")):
        value = product.get(key)
        if value is None:
            continue
        pdf.drawString(left, y, f"{label}: {value}")
        y -= 7 * mm

    description = product.get("description")
    if description:
        y -= 3 * mm
        for line in _wrap(str(description)):
            pdf.drawString(left, y, line)
            y -= 6 * mm

    reviews = product.get("reviews") or []
    if reviews:
        y -= 4 * mm
        pdf.setFont("Helvetica-Bold", 13)
        pdf.drawString(left, y, f"Reviews ({len(reviews)})")
        y -= 8 * mm
        pdf.setFont("Helvetica", 10)
        for review in reviews:
            if y < 20 * mm:
                pdf.showPage()
                pdf.setFont("Helvetica", 10)
                y = page_height - 25 * mm
            rating = review.get("rating")
            text = review.get("text") or ""
            prefix = f"[{rating}/5] " if rating is not None else ""
            pdf.drawString(left, y, f"{prefix}{text}"[:110])
            y -= 6 * mm

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()

"""
CSV text format of the products / orders mirror kept in local storage.

Every field is quoted, embedded quotes are doubled and rows are joined with
a bare newline. The ``items`` column of an order holds a compact JSON array
using the keys productId, productName, quantity and price.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Dict, Iterable, List, Optional, Sequence

from db.models import Order, OrderItem, Product
from utils.logger import get_logger
from utils.pure import to_float

_logger = get_logger(__name__)

PRODUCT_HEADERS = ["id", "name", "costPrice", "salePrice"]
ORDER_HEADERS = ["id", "timestamp", "total", "cost", "profit", "items"]

# columns a mirror must carry to be importable
PRODUCT_REQUIRED = {"id", "name", "costPrice", "salePrice"}
ORDER_REQUIRED = {"id", "timestamp", "total", "items"}


def _fmt(value) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def _json_number(value: float):
    return int(value) if float(value).is_integer() else value


def _write(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_fmt(v) for v in row])
    # QUOTE_ALL makes every row end in a quote, so only the terminator goes
    return buf.getvalue().rstrip("\n")


def _read(text: str, required: set) -> Optional[List[Dict[str, str]]]:
    """
    Parse CSV text into dicts keyed by the header row.
    Returns None when the header lacks a required column or the text is malformed.
    """
    try:
        rows = list(csv.reader(io.StringIO(text or ""), strict=True))
    except csv.Error as e:
        _logger.error(f"Malformed CSV mirror: {e}")
        return None
    if not rows:
        return None

    headers = [h.strip().replace('"', "") for h in rows[0]]
    missing = required - set(headers)
    if missing:
        _logger.warning(f"CSV header is missing columns: {sorted(missing)}")
        return None

    records = []
    for row in rows[1:]:
        if not any(cell.strip() for cell in row):
            continue
        records.append(
            {h: (row[i] if i < len(row) else "") for i, h in enumerate(headers)}
        )
    return records


def items_to_json(items: Iterable[OrderItem]) -> str:
    return json.dumps(
        [
            {
                "productId": item.pid,
                "productName": item.name,
                "quantity": item.qty,
                "price": _json_number(item.uprice),
            }
            for item in items
        ],
        separators=(",", ":"),
    )


def items_from_json(text: str) -> List[OrderItem]:
    try:
        raw = json.loads(text)
    except (TypeError, ValueError):
        return []
    if not isinstance(raw, list):
        return []
    return [
        OrderItem(
            pid=str(entry.get("productId", "")),
            name=str(entry.get("productName", "")),
            qty=int(to_float(entry.get("quantity", 0))),
            uprice=to_float(entry.get("price", 0)),
        )
        for entry in raw
        if isinstance(entry, dict)
    ]


def encode_products(products: Sequence[Product]) -> str:
    if not products:
        return ""
    return _write(
        PRODUCT_HEADERS,
        ([p.pid, p.name, p.cost_price, p.sale_price] for p in products),
    )


def encode_orders(orders: Sequence[Order]) -> str:
    if not orders:
        return ""
    return _write(
        ORDER_HEADERS,
        (
            [o.ono, o.timestamp, o.total, o.cost, o.profit, items_to_json(o.items)]
            for o in orders
        ),
    )


def encode_rows(rows: Sequence[Dict]) -> str:
    """Generic export: the first row's keys are the header, every value quoted."""
    if not rows:
        return ""
    headers = list(rows[0].keys())
    return _write(headers, ([row.get(h, "") for h in headers] for row in rows))


def decode_products(text: str) -> List[Product]:
    records = _read(text, PRODUCT_REQUIRED)
    if records is None:
        return []
    return [
        Product(
            pid=rec["id"],
            name=rec["name"],
            cost_price=to_float(rec["costPrice"]),
            sale_price=to_float(rec["salePrice"]),
        )
        for rec in records
    ]


def decode_orders(text: str) -> List[Order]:
    records = _read(text, ORDER_REQUIRED)
    if records is None:
        return []
    return [
        Order(
            ono=rec["id"],
            timestamp=int(to_float(rec["timestamp"])),
            total=to_float(rec["total"]),
            cost=to_float(rec.get("cost", 0)),
            profit=to_float(rec.get("profit", 0)),
            items=tuple(items_from_json(rec["items"])),
        )
        for rec in records
    ]

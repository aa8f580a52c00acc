# src/db/crud.py
from __future__ import annotations

import os
import random
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import aiosqlite

from db import models
from db.database import connect, storage_get, storage_set
from utils import csv_codec
from utils.logger import get_logger
from utils.pure import digits_only, now_ms, period_bounds, to_float, to_ms

_logger = get_logger(__name__)

LAST_ORDER_NUMBER_KEY = "lastOrderNumber"
PRODUCTS_CSV_KEY = "products_csv_data"
ORDERS_CSV_KEY = "orders_csv_data"

EXPORT_DIR = os.getenv("POS_EXPORT_DIR", "exports")


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def _row_to_product(row) -> models.Product:
    return models.Product(
        pid=row[0], name=row[1], cost_price=float(row[2]), sale_price=float(row[3])
    )


async def _fetch_orders(
    conn: aiosqlite.Connection, where: str = "", params: tuple = (), tail: str = ""
) -> List[models.Order]:
    """Load orders plus their lines; where/tail are SQL fragments for the orders query."""
    cur = await conn.execute(
        f"SELECT ono, ts, total, cost, profit FROM orders {where} {tail};", params
    )
    order_rows = await cur.fetchall()
    await cur.close()
    if not order_rows:
        return []

    onos = [row[0] for row in order_rows]
    marks = ", ".join("?" * len(onos))
    cur = await conn.execute(
        f"""
        SELECT ono, pid, pname, qty, uprice
        FROM orderlines
        WHERE ono IN ({marks})
        ORDER BY ono, lineNo;
        """,
        tuple(onos),
    )
    line_rows = await cur.fetchall()
    await cur.close()

    lines: Dict[str, List[models.OrderItem]] = {}
    for row in line_rows:
        lines.setdefault(row[0], []).append(
            models.OrderItem(pid=row[1], name=row[2], qty=int(row[3]), uprice=float(row[4]))
        )
    return [
        models.Order(
            ono=row[0],
            timestamp=int(row[1]),
            total=float(row[2]),
            cost=float(row[3]),
            profit=float(row[4]),
            items=tuple(lines.get(row[0], [])),
        )
        for row in order_rows
    ]


async def _insert_order(conn: aiosqlite.Connection, order: models.Order) -> None:
    await conn.execute(
        "INSERT INTO orders(ono, ts, total, cost, profit) VALUES (?, ?, ?, ?, ?);",
        (order.ono, order.timestamp, order.total, order.cost, order.profit),
    )
    await conn.executemany(
        "INSERT INTO orderlines(ono, lineNo, pid, pname, qty, uprice) VALUES (?, ?, ?, ?, ?, ?);",
        [
            (order.ono, line_no, item.pid, item.name, item.qty, item.uprice)
            for line_no, item in enumerate(order.items, start=1)
        ],
    )


# ---------------------------
# CSV Mirror
# ---------------------------


async def _write_products_mirror(conn: aiosqlite.Connection) -> None:
    cur = await conn.execute(
        "SELECT pid, name, cost_price, sale_price FROM products ORDER BY rowid;"
    )
    rows = await cur.fetchall()
    await cur.close()
    text = csv_codec.encode_products([_row_to_product(r) for r in rows])
    await storage_set(conn, PRODUCTS_CSV_KEY, text or None)


async def _write_orders_mirror(conn: aiosqlite.Connection) -> None:
    orders = await _fetch_orders(conn, tail="ORDER BY rowid")
    text = csv_codec.encode_orders(orders)
    await storage_set(conn, ORDERS_CSV_KEY, text or None)


async def autosave_products_csv() -> None:
    """Rewrite the products CSV mirror from the products table."""
    async with connect() as conn:
        await _write_products_mirror(conn)
        await conn.commit()


async def autosave_orders_csv() -> None:
    """Rewrite the orders CSV mirror from the orders tables."""
    async with connect() as conn:
        await _write_orders_mirror(conn)
        await conn.commit()


async def get_products_csv() -> Optional[str]:
    async with connect() as conn:
        return await storage_get(conn, PRODUCTS_CSV_KEY)


async def get_orders_csv() -> Optional[str]:
    async with connect() as conn:
        return await storage_get(conn, ORDERS_CSV_KEY)


# ---------------------------
# Products
# ---------------------------


async def list_products() -> List[models.Product]:
    """All products in the order they were added."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT pid, name, cost_price, sale_price FROM products ORDER BY rowid;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(r) for r in rows]


async def get_product(pid: str) -> Optional[models.Product]:
    """Fetch a product by pid."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT pid, name, cost_price, sale_price FROM products WHERE pid = ?;",
            (pid,),
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_product(row) if row else None


async def product_exists(pid: str) -> bool:
    async with connect() as conn:
        cur = await conn.execute("SELECT 1 FROM products WHERE pid = ?;", (pid,))
        row = await cur.fetchone()
        await cur.close()
        return row is not None


async def _generate_pid(conn: aiosqlite.Connection) -> str:
    """PROD- plus the last six digits of the ms clock; random suffix on collision."""
    suffix = str(now_ms())[-6:]
    while True:
        pid = f"PROD-{suffix}"
        cur = await conn.execute("SELECT 1 FROM products WHERE pid = ?;", (pid,))
        exists = await cur.fetchone()
        await cur.close()
        if not exists:
            return pid
        suffix = f"{random.randint(0, 999999):06d}"


async def add_product(name: str, cost_price, sale_price) -> models.Product:
    """
    Create a product with a generated id and return it.
    Prices may be given as text; anything unparsable counts as 0.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Please enter a product name.")
    async with connect() as conn:
        product = models.Product(
            pid=await _generate_pid(conn),
            name=name,
            cost_price=to_float(cost_price),
            sale_price=to_float(sale_price),
        )
        await conn.execute(
            "INSERT INTO products(pid, name, cost_price, sale_price) VALUES (?, ?, ?, ?);",
            (product.pid, product.name, product.cost_price, product.sale_price),
        )
        await _write_products_mirror(conn)
        await conn.commit()
    _logger.info(f"Product added: {product.pid} {product.name}")
    return product


async def save_product(product: models.Product) -> None:
    """Insert the product, or replace the existing one with the same pid in place."""
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO products(pid, name, cost_price, sale_price) VALUES (?, ?, ?, ?)
            ON CONFLICT(pid) DO UPDATE SET
                name = excluded.name,
                cost_price = excluded.cost_price,
                sale_price = excluded.sale_price;
            """,
            (product.pid, product.name, product.cost_price, product.sale_price),
        )
        await _write_products_mirror(conn)
        await conn.commit()
    _logger.info(f"Product saved: {product.pid} {product.name}")


async def delete_product(pid: str) -> bool:
    """
    Remove a product. Orders referencing it are left untouched.
    Return True if a row was deleted.
    """
    async with connect() as conn:
        res = await conn.execute("DELETE FROM products WHERE pid = ?;", (pid,))
        deleted = res.rowcount > 0
        await _write_products_mirror(conn)
        await conn.commit()
    if deleted:
        _logger.info(f"Product deleted: {pid}")
    return deleted


# ---------------------------
# Order Numbers
# ---------------------------


async def _next_order_number(conn: aiosqlite.Connection) -> int:
    last = _to_int(await storage_get(conn, LAST_ORDER_NUMBER_KEY))
    number = last + 1 if last is not None else 1
    # skip numbers already used by imported orders
    while True:
        cur = await conn.execute("SELECT 1 FROM orders WHERE ono = ?;", (str(number),))
        taken = await cur.fetchone()
        await cur.close()
        if not taken:
            return number
        number += 1


async def get_next_order_number() -> int:
    """lastOrderNumber + 1, or 1 when no order number was stored yet."""
    async with connect() as conn:
        return await _next_order_number(conn)


async def save_last_order_number(order_number: int) -> None:
    async with connect() as conn:
        await storage_set(conn, LAST_ORDER_NUMBER_KEY, str(order_number))
        await conn.commit()


# ---------------------------
# Checkout & Orders
# ---------------------------


async def checkout(
    items: Sequence[models.OrderItem], when: Optional[datetime] = None
) -> models.Order:
    """
    Turn the items of the current order into a saved order with the next
    sequential order number and return it.

    Cost uses each product's current cost price; products that no longer
    exist cost nothing.
    """
    if not items:
        raise ValueError("Please add items to your order before checkout.")

    timestamp = to_ms(when) if when else now_ms()
    total = sum(item.uprice * item.qty for item in items)

    async with connect() as conn:
        pids = list({item.pid for item in items})
        marks = ", ".join("?" * len(pids))
        cur = await conn.execute(
            f"SELECT pid, cost_price FROM products WHERE pid IN ({marks});",
            tuple(pids),
        )
        cost_prices = {row[0]: float(row[1]) for row in await cur.fetchall()}
        await cur.close()
        cost = sum(cost_prices.get(item.pid, 0.0) * item.qty for item in items)

        order_number = await _next_order_number(conn)

        order = models.Order(
            ono=str(order_number),
            timestamp=timestamp,
            total=total,
            cost=cost,
            profit=total - cost,
            items=tuple(items),
        )
        await _insert_order(conn, order)
        await storage_set(conn, LAST_ORDER_NUMBER_KEY, str(order_number))
        await _write_orders_mirror(conn)
        await conn.commit()

    _logger.info(f"Order #{order.ono} checked out, total {order.total:.2f}")
    return order


async def save_order(order: models.Order) -> None:
    """Append an already built order as-is."""
    async with connect() as conn:
        await _insert_order(conn, order)
        await _write_orders_mirror(conn)
        await conn.commit()


async def get_order(ono: str) -> Optional[models.Order]:
    async with connect() as conn:
        orders = await _fetch_orders(conn, "WHERE ono = ?", (ono,))
    return orders[0] if orders else None


def _search_clause(query: str) -> Tuple[str, tuple]:
    term = (query or "").strip().lower()
    if not term:
        return "", ()
    return "WHERE instr(LOWER(ono), ?) > 0", (term,)


async def search_orders(query: str = "") -> List[models.Order]:
    """
    Orders newest first. A non-blank query keeps orders whose id contains it,
    case-insensitively.
    """
    where, params = _search_clause(query)
    async with connect() as conn:
        return await _fetch_orders(conn, where, params, "ORDER BY ts DESC, rowid DESC")


async def list_orders(
    query: str = "", page: int = 1, page_size: int = 10
) -> Tuple[List[models.Order], int]:
    """
    Paginated search_orders. Return (orders_for_page, total_count).
    """
    where, params = _search_clause(query)
    offset = max(page - 1, 0) * page_size
    async with connect() as conn:
        cur = await conn.execute(f"SELECT COUNT(*) FROM orders {where};", params)
        total = (await cur.fetchone())[0]
        await cur.close()
        orders = await _fetch_orders(
            conn,
            where,
            params + (page_size, offset),
            "ORDER BY ts DESC, rowid DESC LIMIT ? OFFSET ?",
        )
    return orders, total


async def recent_orders(limit: int = 5) -> List[models.Order]:
    """The most recently saved orders, newest first."""
    async with connect() as conn:
        return await _fetch_orders(conn, params=(limit,), tail="ORDER BY rowid DESC LIMIT ?")


# ---------------------------
# Import, Restore & Export
# ---------------------------


async def import_products_from_csv(csv_text: str) -> List[models.Product]:
    """
    Replace all products with the ones found in csv_text.
    Nothing is touched if the text yields no products.
    """
    products = csv_codec.decode_products(csv_text)
    if not products:
        return []
    async with connect() as conn:
        await conn.execute("DELETE FROM products;")
        await conn.executemany(
            """
            INSERT INTO products(pid, name, cost_price, sale_price) VALUES (?, ?, ?, ?)
            ON CONFLICT(pid) DO UPDATE SET
                name = excluded.name,
                cost_price = excluded.cost_price,
                sale_price = excluded.sale_price;
            """,
            [(p.pid, p.name, p.cost_price, p.sale_price) for p in products],
        )
        await _write_products_mirror(conn)
        await conn.commit()
    _logger.info(f"Imported {len(products)} products from CSV")
    return products


async def import_orders_from_csv(csv_text: str) -> List[models.Order]:
    """
    Replace all orders with the ones found in csv_text, then move the order
    number counter to the largest number found in the imported ids.
    Nothing is touched if the text yields no orders.
    """
    decoded = csv_codec.decode_orders(csv_text)
    if not decoded:
        return []
    # keep the first occurrence of a duplicated id
    orders: Dict[str, models.Order] = {}
    for order in decoded:
        orders.setdefault(order.ono, order)

    async with connect() as conn:
        await conn.execute("DELETE FROM orderlines;")
        await conn.execute("DELETE FROM orders;")
        for order in orders.values():
            await _insert_order(conn, order)
        last = max(digits_only(ono) for ono in orders)
        await storage_set(conn, LAST_ORDER_NUMBER_KEY, str(last))
        await _write_orders_mirror(conn)
        await conn.commit()
    _logger.info(f"Imported {len(orders)} orders from CSV, last order number {last}")
    return list(orders.values())


async def check_and_restore_data() -> Dict[str, int]:
    """
    Restore products and/or orders from their CSV mirrors when the primary
    tables are empty. Return how many of each were restored.
    """
    restored = {"products": 0, "orders": 0}
    async with connect() as conn:
        cur = await conn.execute("SELECT COUNT(*) FROM products;")
        n_products = (await cur.fetchone())[0]
        await cur.close()
        cur = await conn.execute("SELECT COUNT(*) FROM orders;")
        n_orders = (await cur.fetchone())[0]
        await cur.close()
        products_csv = await storage_get(conn, PRODUCTS_CSV_KEY)
        orders_csv = await storage_get(conn, ORDERS_CSV_KEY)

    if n_products == 0 and products_csv:
        restored["products"] = len(await import_products_from_csv(products_csv))
    if n_orders == 0 and orders_csv:
        restored["orders"] = len(await import_orders_from_csv(orders_csv))

    if restored["products"] or restored["orders"]:
        _logger.warning(
            f"Restored {restored['products']} products and "
            f"{restored['orders']} orders from CSV mirror"
        )
    return restored


def _write_text(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def export_orders_csv(orders: Sequence[models.Order], directory: str | os.PathLike) -> Path:
    """
    Write the order history export (one row per order) and return its path.
    """
    if not orders:
        raise ValueError("There are no orders to export.")
    rows = [
        {
            "OrderID": o.ono,
            "Date": o.odate.strftime("%m/%d/%Y"),
            "Time": o.odate.strftime("%I:%M:%S %p"),
            "Items": o.item_count,
            "Total": o.total,
            "Cost": o.cost,
            "Profit": o.profit,
        }
        for o in orders
    ]
    path = _write_text(
        Path(directory) / f"orders-export-{now_ms()}.csv", csv_codec.encode_rows(rows)
    )
    _logger.info(f"Exported {len(rows)} orders to {path}")
    return path


async def export_products_csv(path: str | os.PathLike) -> Path:
    """Write the products mirror format to a file, importable again later."""
    products = await list_products()
    if not products:
        raise ValueError("There are no products to export.")
    out = _write_text(Path(path), csv_codec.encode_products(products))
    _logger.info(f"Exported {len(products)} products to {out}")
    return out


async def export_orders_backup(path: str | os.PathLike) -> Path:
    """Write every order in the mirror format, importable with import_orders_file."""
    async with connect() as conn:
        orders = await _fetch_orders(conn, tail="ORDER BY rowid")
    if not orders:
        raise ValueError("There are no orders to back up.")
    out = _write_text(Path(path), csv_codec.encode_orders(orders))
    _logger.info(f"Backed up {len(orders)} orders to {out}")
    return out


async def import_products_file(path: str | os.PathLike) -> List[models.Product]:
    text = Path(path).read_text(encoding="utf-8")
    return await import_products_from_csv(text)


async def import_orders_file(path: str | os.PathLike) -> List[models.Order]:
    text = Path(path).read_text(encoding="utf-8")
    return await import_orders_from_csv(text)


# ---------------------------
# Analytics
# ---------------------------


def _period_clause(period: str, now: Optional[datetime]) -> Tuple[str, tuple]:
    start, end = period_bounds(period, now)
    conds, params = [], []
    if start is not None:
        conds.append("o.ts >= ?")
        params.append(start)
    if end is not None:
        conds.append("o.ts < ?")
        params.append(end)
    where = ("WHERE " + " AND ".join(conds)) if conds else ""
    return where, tuple(params)


async def sales_summary(period: str = "today", now: Optional[datetime] = None) -> Dict[str, float]:
    """
    Totals over the orders of a period: total_orders, total_revenue,
    total_cost and total_profit.
    """
    where, params = _period_clause(period, now)
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT COUNT(*),
                   COALESCE(SUM(o.total), 0.0),
                   COALESCE(SUM(o.cost), 0.0),
                   COALESCE(SUM(o.profit), 0.0)
            FROM orders o
            {where};
            """,
            params,
        )
        row = await cur.fetchone()
        await cur.close()
    return {
        "total_orders": int(row[0] or 0),
        "total_revenue": float(row[1] or 0.0),
        "total_cost": float(row[2] or 0.0),
        "total_profit": float(row[3] or 0.0),
    }


async def product_stats(period: str = "today", now: Optional[datetime] = None) -> List[models.ProductStat]:
    """
    Per-product performance over a period, best revenue first.

    Only products still in the inventory are reported, and profit is
    measured against their current cost price.
    """
    where, params = _period_clause(period, now)
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT p.pid,
                   p.name,
                   p.cost_price,
                   SUM(ol.qty)                             AS quantity,
                   SUM(ol.qty * ol.uprice)                 AS revenue,
                   SUM((ol.uprice - p.cost_price) * ol.qty) AS profit
            FROM orderlines ol
            JOIN orders o ON o.ono = ol.ono
            JOIN products p ON p.pid = ol.pid
            {where}
            GROUP BY p.pid
            HAVING SUM(ol.qty) > 0
            ORDER BY revenue DESC, p.rowid;
            """,
            params,
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.ProductStat(
            pid=row[0],
            name=row[1],
            cost_price=float(row[2]),
            quantity=int(row[3]),
            revenue=float(row[4]),
            profit=float(row[5]),
        )
        for row in rows
    ]

import os
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from db import crud
from db import database as db_database
from db.models import Order, OrderItem, Product
from utils.csv_codec import encode_orders
from utils.pure import to_ms

NOW = datetime(2025, 11, 5, 15, 0, 0)


def _item(product: Product, qty: int) -> OrderItem:
    return OrderItem(pid=product.pid, name=product.name, qty=qty, uprice=product.sale_price)


class CrudTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

    async def asyncSetUp(self):
        self.burger = await crud.add_product("Burger", 2.5, 6)
        self.fries = await crud.add_product("Fries", "1", "3")

    def tearDown(self):
        self.temp_dir.cleanup()

    # ---------- Products ----------

    async def test_add_product_generates_ids_and_parses_prices(self):
        self.assertTrue(self.burger.pid.startswith("PROD-"))
        self.assertEqual(len(self.burger.pid), len("PROD-") + 6)
        self.assertNotEqual(self.burger.pid, self.fries.pid)
        self.assertEqual(self.fries.cost_price, 1.0)
        self.assertEqual(self.fries.sale_price, 3.0)

        soda = await crud.add_product("  Soda  ", "abc", "")
        self.assertEqual(soda.name, "Soda")
        self.assertEqual(soda.cost_price, 0.0)
        self.assertEqual(soda.sale_price, 0.0)

        with self.assertRaises(ValueError):
            await crud.add_product("   ", 1, 2)

    async def test_list_get_save_delete_products(self):
        products = await crud.list_products()
        self.assertEqual([p.name for p in products], ["Burger", "Fries"])

        self.assertEqual(await crud.get_product(self.fries.pid), self.fries)
        self.assertIsNone(await crud.get_product("PROD-nope"))
        self.assertTrue(await crud.product_exists(self.burger.pid))

        # update keeps the product's position
        updated = Product(self.burger.pid, "Cheese Burger", 3.0, 7.5)
        await crud.save_product(updated)
        products = await crud.list_products()
        self.assertEqual(products[0], updated)

        # save with an unknown id inserts
        await crud.save_product(Product("PROD-000001", "Tea", 0.2, 1.0))
        self.assertEqual(len(await crud.list_products()), 3)

        self.assertTrue(await crud.delete_product(self.fries.pid))
        self.assertFalse(await crud.delete_product(self.fries.pid))
        self.assertEqual(
            [p.name for p in await crud.list_products()], ["Cheese Burger", "Tea"]
        )

    async def test_product_writes_refresh_mirror(self):
        mirror = await crud.get_products_csv()
        self.assertIn('"Burger"', mirror)
        self.assertIn('"Fries"', mirror)

        await crud.delete_product(self.burger.pid)
        self.assertNotIn("Burger", await crud.get_products_csv())

        # last product gone -> no stale mirror left behind
        await crud.delete_product(self.fries.pid)
        self.assertIsNone(await crud.get_products_csv())

    # ---------- Order numbers ----------

    async def test_order_number_counter(self):
        self.assertEqual(await crud.get_next_order_number(), 1)
        await crud.save_last_order_number(41)
        self.assertEqual(await crud.get_next_order_number(), 42)

        async with db_database.connect() as conn:
            await db_database.storage_set(conn, crud.LAST_ORDER_NUMBER_KEY, "garbage")
            await conn.commit()
        self.assertEqual(await crud.get_next_order_number(), 1)

    # ---------- Checkout & orders ----------

    async def test_checkout_computes_totals_and_numbers(self):
        with self.assertRaises(ValueError):
            await crud.checkout([])

        when = datetime(2025, 11, 5, 10, 0, 0)
        order = await crud.checkout([_item(self.burger, 2), _item(self.fries, 1)], when)
        self.assertEqual(order.ono, "1")
        self.assertEqual(order.timestamp, to_ms(when))
        self.assertAlmostEqual(order.total, 15.0)
        self.assertAlmostEqual(order.cost, 6.0)
        self.assertAlmostEqual(order.profit, 9.0)

        second = await crud.checkout([_item(self.fries, 2)])
        self.assertEqual(second.ono, "2")
        self.assertEqual(await crud.get_next_order_number(), 3)

        stored = await crud.get_order("1")
        self.assertEqual(stored, order)
        self.assertEqual(stored.item_count, 3)
        self.assertIsNone(await crud.get_order("999"))

    async def test_checkout_of_deleted_product_costs_nothing(self):
        items = [_item(self.fries, 2)]
        await crud.delete_product(self.fries.pid)
        order = await crud.checkout(items)
        self.assertAlmostEqual(order.total, 6.0)
        self.assertAlmostEqual(order.cost, 0.0)
        self.assertAlmostEqual(order.profit, 6.0)

    async def test_checkout_refreshes_orders_mirror(self):
        self.assertIsNone(await crud.get_orders_csv())
        await crud.checkout([_item(self.burger, 1)])
        mirror = await crud.get_orders_csv()
        self.assertTrue(mirror.startswith('"id","timestamp","total","cost","profit","items"'))
        self.assertIn('""productName"":""Burger""', mirror)

    async def test_search_list_and_recent_orders(self):
        for hour in range(8, 20):  # 12 orders, ids 1..12
            await crud.checkout([_item(self.fries, 1)], datetime(2025, 11, 5, hour))

        newest_first = await crud.search_orders()
        self.assertEqual(len(newest_first), 12)
        self.assertEqual(newest_first[0].ono, "12")
        self.assertEqual(newest_first[-1].ono, "1")

        matches = await crud.search_orders(" 1 ")
        self.assertEqual([o.ono for o in matches], ["12", "11", "10", "1"])
        self.assertEqual(await crud.search_orders("x"), [])

        page2, total = await crud.list_orders("", page=2, page_size=5)
        self.assertEqual(total, 12)
        self.assertEqual([o.ono for o in page2], ["7", "6", "5", "4", "3"])

        recent = await crud.recent_orders(5)
        self.assertEqual([o.ono for o in recent], ["12", "11", "10", "9", "8"])

    # ---------- Import, restore & export ----------

    async def test_import_products_replaces_inventory(self):
        text = 'id,name,costPrice,salePrice\n"P1","Tea","0.5","1.25"\n"P2","Coffee","0.8","2"'
        imported = await crud.import_products_from_csv(text)
        self.assertEqual([p.pid for p in imported], ["P1", "P2"])
        self.assertEqual(await crud.list_products(), imported)

        # invalid header leaves storage untouched
        self.assertEqual(await crud.import_products_from_csv("id,name\n\"X\",\"Y\""), [])
        self.assertEqual(len(await crud.list_products()), 2)

    async def test_import_orders_moves_order_counter(self):
        orders = [
            Order("7", to_ms(NOW), 6.0, 2.5, 3.5, (_item(self.burger, 1),)),
            Order("ORD-12", to_ms(NOW), 3.0, 1.0, 2.0, (_item(self.fries, 1),)),
            Order("abc", to_ms(NOW), 3.0, 1.0, 2.0, ()),
        ]
        imported = await crud.import_orders_from_csv(encode_orders(orders))
        self.assertEqual(len(imported), 3)
        self.assertEqual(await crud.get_order("ORD-12"), orders[1])
        self.assertEqual(await crud.get_next_order_number(), 13)

        # the next checkout continues after the imported numbers
        order = await crud.checkout([_item(self.fries, 1)])
        self.assertEqual(order.ono, "13")

    async def test_import_orders_with_non_ascii_digit_ids(self):
        orders = [Order("A²", to_ms(NOW), 6.0, 2.5, 3.5, (_item(self.burger, 1),))]
        imported = await crud.import_orders_from_csv(encode_orders(orders))
        self.assertEqual(imported, orders)
        self.assertEqual(await crud.get_next_order_number(), 1)

    async def test_check_and_restore_data_from_mirror(self):
        order = await crud.checkout([_item(self.burger, 2)], NOW)

        # nothing to restore while the tables hold data
        self.assertEqual(
            await crud.check_and_restore_data(), {"products": 0, "orders": 0}
        )

        async with db_database.connect() as conn:
            await conn.execute("DELETE FROM orderlines;")
            await conn.execute("DELETE FROM orders;")
            await conn.execute("DELETE FROM products;")
            await conn.execute(
                "DELETE FROM local_storage WHERE key = ?;", (crud.LAST_ORDER_NUMBER_KEY,)
            )
            await conn.commit()

        restored = await crud.check_and_restore_data()
        self.assertEqual(restored, {"products": 2, "orders": 1})
        self.assertEqual(await crud.list_products(), [self.burger, self.fries])
        self.assertEqual(await crud.get_order(order.ono), order)
        self.assertEqual(await crud.get_next_order_number(), 2)

    async def test_export_orders_csv(self):
        with self.assertRaises(ValueError):
            crud.export_orders_csv([], self.temp_dir.name)

        await crud.checkout([_item(self.burger, 2), _item(self.fries, 1)], NOW)
        path = crud.export_orders_csv(await crud.search_orders(), self.temp_dir.name)
        self.assertTrue(path.name.startswith("orders-export-"))
        lines = path.read_text(encoding="utf-8").split("\n")
        self.assertEqual(
            lines[0], '"OrderID","Date","Time","Items","Total","Cost","Profit"'
        )
        self.assertEqual(lines[1], '"1","11/05/2025","03:00:00 PM","3","15","6","9"')

    async def test_products_file_round_trip(self):
        path = Path(self.temp_dir.name) / "backup" / "products.csv"
        await crud.export_products_csv(path)
        await crud.delete_product(self.burger.pid)

        restored = await crud.import_products_file(path)
        self.assertEqual(restored, [self.burger, self.fries])

        await crud.delete_product(self.burger.pid)
        await crud.delete_product(self.fries.pid)
        with self.assertRaises(ValueError):
            await crud.export_products_csv(path)

    async def test_orders_backup_file_round_trip(self):
        path = Path(self.temp_dir.name) / "backup" / "orders.csv"
        with self.assertRaises(ValueError):
            await crud.export_orders_backup(path)

        first = await crud.checkout([_item(self.burger, 2)], NOW)
        second = await crud.checkout([_item(self.fries, 1)], NOW)
        await crud.export_orders_backup(path)

        async with db_database.connect() as conn:
            await conn.execute("DELETE FROM orderlines;")
            await conn.execute("DELETE FROM orders;")
            await conn.commit()

        restored = await crud.import_orders_file(path)
        self.assertEqual(restored, [first, second])
        self.assertEqual(await crud.get_next_order_number(), 3)

    async def test_save_order_autosave_and_orders_file(self):
        order = Order(
            ono="42",
            timestamp=to_ms(NOW),
            total=6.0,
            cost=2.5,
            profit=3.5,
            items=(_item(self.burger, 1),),
        )
        await crud.save_order(order)
        self.assertEqual(await crud.get_order("42"), order)
        self.assertEqual(await crud.get_orders_csv(), encode_orders([order]))

        # a wiped mirror is rebuilt from the tables
        async with db_database.connect() as conn:
            await db_database.storage_set(conn, crud.ORDERS_CSV_KEY, None)
            await db_database.storage_set(conn, crud.PRODUCTS_CSV_KEY, None)
            await conn.commit()
        await crud.autosave_orders_csv()
        await crud.autosave_products_csv()
        self.assertEqual(await crud.get_orders_csv(), encode_orders([order]))
        self.assertIsNotNone(await crud.get_products_csv())

        path = Path(self.temp_dir.name) / "orders.csv"
        path.write_text(await crud.get_orders_csv(), encoding="utf-8")
        imported = await crud.import_orders_file(path)
        self.assertEqual(imported, [order])
        self.assertEqual(await crud.get_next_order_number(), 43)

    # ---------- Analytics ----------

    async def _seed_history(self):
        await crud.checkout(
            [_item(self.burger, 2), _item(self.fries, 1)], datetime(2025, 11, 5, 10)
        )
        await crud.checkout([_item(self.fries, 4)], datetime(2025, 11, 4, 12))
        await crud.checkout([_item(self.burger, 1)], datetime(2025, 11, 1, 9))
        await crud.checkout([_item(self.fries, 1)], datetime(2025, 10, 20, 18))
        await crud.checkout([_item(self.burger, 10)], datetime(2025, 9, 1, 12))

    async def test_sales_summary_by_period(self):
        await self._seed_history()

        today = await crud.sales_summary("today", NOW)
        self.assertEqual(today["total_orders"], 1)
        self.assertAlmostEqual(today["total_revenue"], 15.0)
        self.assertAlmostEqual(today["total_cost"], 6.0)
        self.assertAlmostEqual(today["total_profit"], 9.0)

        yesterday = await crud.sales_summary("yesterday", NOW)
        self.assertEqual(yesterday["total_orders"], 1)
        self.assertAlmostEqual(yesterday["total_revenue"], 12.0)

        counts = {
            p: (await crud.sales_summary(p, NOW))["total_orders"]
            for p in ("week", "month", "all", "bogus")
        }
        self.assertEqual(counts, {"week": 3, "month": 4, "all": 5, "bogus": 5})
        self.assertAlmostEqual((await crud.sales_summary("all", NOW))["total_revenue"], 96.0)

    async def test_product_stats(self):
        await self._seed_history()

        stats = await crud.product_stats("week", NOW)
        self.assertEqual([s.name for s in stats], ["Burger", "Fries"])
        burger, fries = stats
        self.assertEqual(burger.quantity, 3)
        self.assertAlmostEqual(burger.revenue, 18.0)
        self.assertAlmostEqual(burger.vendor_payment, 7.5)
        self.assertAlmostEqual(burger.profit, 10.5)
        self.assertEqual(fries.quantity, 5)
        self.assertAlmostEqual(fries.profit, 10.0)

        # profit follows the current cost price
        await crud.save_product(Product(self.burger.pid, "Burger", 3.0, 6.0))
        stats = await crud.product_stats("week", NOW)
        self.assertAlmostEqual(stats[0].profit, 9.0)

        # deleted products drop out, products without sales never show
        await crud.delete_product(self.fries.pid)
        await crud.add_product("Soda", 0.5, 1.5)
        stats = await crud.product_stats("week", NOW)
        self.assertEqual([s.name for s in stats], ["Burger"])

        self.assertEqual(await crud.product_stats("yesterday", datetime(2030, 1, 1)), [])

    def test__to_int_helper(self):
        self.assertEqual(crud._to_int("3"), 3)
        self.assertIsNone(crud._to_int("nan"))
        self.assertIsNone(crud._to_int(None))

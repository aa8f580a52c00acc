import unittest

from db.models import Order, OrderItem, Product
from utils import csv_codec


class ProductsCsvTestCase(unittest.TestCase):
    def test_encode_quotes_every_field(self):
        text = csv_codec.encode_products([Product("PROD-1", "Burger", 2.5, 6.0)])
        self.assertEqual(
            text,
            '"id","name","costPrice","salePrice"\n"PROD-1","Burger","2.5","6"',
        )
        self.assertEqual(csv_codec.encode_products([]), "")

    def test_names_with_commas_and_quotes_survive(self):
        products = [
            Product("P1", 'Say "Cheese", Burger', 1.0, 2.0),
            Product("P2", "Fries", 0.35, 1.5),
        ]
        self.assertEqual(
            csv_codec.decode_products(csv_codec.encode_products(products)), products
        )

    def test_decode_unquoted_header_and_blank_lines(self):
        text = 'id,name,costPrice,salePrice\n"P1","Tea","0.5","1.25"\n\n   \n'
        self.assertEqual(
            csv_codec.decode_products(text), [Product("P1", "Tea", 0.5, 1.25)]
        )

    def test_decode_follows_header_order(self):
        text = '"name","salePrice","id","costPrice"\n"Tea","1.25","P1","0.5"'
        self.assertEqual(
            csv_codec.decode_products(text), [Product("P1", "Tea", 0.5, 1.25)]
        )

    def test_decode_rejects_missing_columns(self):
        self.assertEqual(csv_codec.decode_products('id,name\n"P1","Tea"'), [])
        self.assertEqual(csv_codec.decode_products(""), [])

    def test_unbalanced_quote_yields_nothing(self):
        text = (
            'id,name,costPrice,salePrice\n'
            '"P1","Tea,"0.5","1"\n'
            '"P2","Coffee","0.8","2"'
        )
        with self.assertLogs("utils.csv_codec", level="ERROR"):
            self.assertEqual(csv_codec.decode_products(text), [])
        with self.assertLogs("utils.csv_codec", level="ERROR"):
            self.assertEqual(
                csv_codec.decode_products('id,name,costPrice,salePrice\n"P1","Tea'), []
            )

    def test_unparsable_prices_become_zero(self):
        text = 'id,name,costPrice,salePrice\n"P1","Tea","cheap",""'
        self.assertEqual(
            csv_codec.decode_products(text), [Product("P1", "Tea", 0.0, 0.0)]
        )


class OrdersCsvTestCase(unittest.TestCase):
    def setUp(self):
        self.order = Order(
            ono="3",
            timestamp=1762351200000,
            total=15.0,
            cost=6.0,
            profit=9.0,
            items=(
                OrderItem("P1", "Burger", 2, 6.0),
                OrderItem("P2", "Fries, large", 1, 3.0),
            ),
        )

    def test_items_column_is_escaped_json(self):
        text = csv_codec.encode_orders([self.order])
        header, row = text.split("\n")
        self.assertEqual(header, '"id","timestamp","total","cost","profit","items"')
        self.assertTrue(row.startswith('"3","1762351200000","15","6","9","[{""productId"":""P1""'))
        self.assertEqual(csv_codec.encode_orders([]), "")

    def test_round_trip_keeps_items(self):
        text = csv_codec.encode_orders([self.order])
        self.assertEqual(csv_codec.decode_orders(text), [self.order])

    def test_bad_items_and_missing_optional_columns(self):
        text = 'id,timestamp,total,items\n"1","1700000000000","4.5","not json"\n"2","x","1","{}"'
        first, second = csv_codec.decode_orders(text)
        self.assertEqual(first.items, ())
        self.assertEqual(first.cost, 0.0)
        self.assertEqual(first.profit, 0.0)
        self.assertEqual(first.timestamp, 1700000000000)
        self.assertEqual(second.timestamp, 0)
        self.assertEqual(second.items, ())

    def test_item_entries_get_defaults(self):
        items = csv_codec.items_from_json('[{"productId":"P1"}, 5, {"quantity":"2","price":"1.5"}]')
        self.assertEqual(
            items, [OrderItem("P1", "", 0, 0.0), OrderItem("", "", 2, 1.5)]
        )

    def test_decode_rejects_missing_columns(self):
        self.assertEqual(csv_codec.decode_orders('id,total,items\n"1","2","[]"'), [])


class EncodeRowsTestCase(unittest.TestCase):
    def test_header_from_first_row(self):
        rows = [
            {"OrderID": "1", "Items": 3, "Total": 15.0},
            {"OrderID": "2", "Items": 1, "Total": 2.75},
        ]
        self.assertEqual(
            csv_codec.encode_rows(rows),
            '"OrderID","Items","Total"\n"1","3","15"\n"2","1","2.75"',
        )
        self.assertEqual(csv_codec.encode_rows([]), "")

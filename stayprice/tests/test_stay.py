"""
test_stay.py: Tests for stay request and inventory occupancy validation.
"""

import unittest

from stayprice.engine.stay import (
    DEFAULT_PROTOCOL_VERSION,
    InventoryOccupancy,
    build_occupancy_table,
    build_stay_request,
    parse_occupancy_spec,
)
from stayprice.errors import InputError, StaypriceError
from stayprice.utilities import dates


class TestStayRequest(unittest.TestCase):
    def test_valid_request(self):
        stay = build_stay_request("2025-03-22", "2025-03-29", "2", ["5", 10], booking_date="2025-01-01")
        self.assertEqual(stay.nights, 7)
        self.assertEqual(stay.num_adults, 2)
        self.assertEqual(stay.children_ages, (5, 10))
        self.assertEqual(stay.guest_count, 4)
        self.assertEqual(stay.protocol_version, DEFAULT_PROTOCOL_VERSION)
        self.assertEqual(stay.occupancy, ())

    def test_defaults(self):
        stay = build_stay_request("2025-03-22", "2025-03-23", 1)
        self.assertTrue(dates.is_valid_date(stay.booking_date))
        self.assertEqual(stay.children_ages, ())

    def test_only_children(self):
        stay = build_stay_request("2025-03-22", "2025-03-23", 0, [8])
        self.assertEqual(stay.guest_count, 1)

    def test_protocol_versions(self):
        stay = build_stay_request("2025-03-22", "2025-03-23", 1, protocol_version="2018-10")
        self.assertEqual(stay.protocol_version, "2018-10")
        with self.assertRaises(InputError):
            build_stay_request("2025-03-22", "2025-03-23", 1, protocol_version="2019-10")

    def test_rejects(self):
        bad = [
            dict(arrival="2025-02-30", departure="2025-03-01", num_adults=1),
            dict(arrival="2025-03-01", departure="tomorrow", num_adults=1),
            dict(arrival="2025-03-01", departure="2025-03-01", num_adults=1),
            dict(arrival="2025-03-02", departure="2025-03-01", num_adults=1),
            dict(arrival="2025-03-01", departure="2025-03-02", num_adults="x"),
            dict(arrival="2025-03-01", departure="2025-03-02", num_adults="1000"),
            dict(arrival="2025-03-01", departure="2025-03-02", num_adults=-1),
            dict(arrival="2025-03-01", departure="2025-03-02", num_adults=1, children_ages=["a"]),
            dict(arrival="2025-03-01", departure="2025-03-02", num_adults=0),
            dict(arrival="2025-03-01", departure="2025-03-02", num_adults=1, booking_date="2025-13-01"),
            dict(arrival="2025-03-01", departure="2025-03-02", num_adults=1, occupancy=[("B", 3, 2, 4, None)]),
        ]
        for kwargs in bad:
            with self.assertRaises(InputError, msg=kwargs):
                build_stay_request(**kwargs)

    def test_error_hierarchy(self):
        with self.assertRaises(StaypriceError):
            build_stay_request("2025-03-01", "2025-03-01", 1)
        with self.assertRaises(ValueError):
            build_stay_request("2025-03-01", "2025-03-01", 1)


class TestOccupancyTable(unittest.TestCase):
    def test_rows(self):
        table = build_occupancy_table([
            ("B", "1", "2", "3", "undefined"),
            ("S", 1, 1, 2),
            InventoryOccupancy("F", 2, 4, 6, 2),
        ])
        self.assertEqual([item.code for item in table], ["B", "S", "F"])
        self.assertIsNone(table[0].max_child_occupancy)
        self.assertIsNone(table[1].max_child_occupancy)
        self.assertEqual(table[2].max_child_occupancy, 2)

    def test_lookup(self):
        stay = build_stay_request("2025-03-22", "2025-03-23", 1, occupancy=[("B", 1, 2, 3, None)])
        self.assertEqual(stay.occupancy_for("B").std_occupancy, 2)
        self.assertIsNone(stay.occupancy_for("S"))

    def test_rejects(self):
        bad = [
            [("B", 1, 2, 3, None), ("B", 1, 1, 1, None)],
            [("B", 1, 2)],
            [("", 1, 2, 3, None)],
            [(None, 1, 2, 3, None)],
            [("B", 0, 2, 3, None)],
            [("B", 1, "two", 3, None)],
            [("B", 1, 4, 3, None)],
            [("B", 1, 2, 3, 4)],
            [("B", 1, 2, 3, "-1")],
        ]
        for rows in bad:
            with self.assertRaises(InputError, msg=rows):
                build_occupancy_table(rows)

    def test_full_payers_needed(self):
        self.assertEqual(InventoryOccupancy("B", 2, 2, 3, 1).full_payers_needed(), 2)
        self.assertEqual(InventoryOccupancy("B", 1, 2, 4, 3).full_payers_needed(), 1)
        self.assertEqual(InventoryOccupancy("B", 1, 3, 5, 1).full_payers_needed(), 3)
        self.assertEqual(InventoryOccupancy("B", 1, 2, 3, None).full_payers_needed(), 2)

    def test_compact_spec(self):
        self.assertEqual(parse_occupancy_spec("B:1:2:3"), ("B", 1, 2, 3, None))
        self.assertEqual(parse_occupancy_spec("B:1:2:3:undefined"), ("B", 1, 2, 3, None))
        self.assertEqual(parse_occupancy_spec("DZ:1:2:4:2"), ("DZ", 1, 2, 4, 2))
        for text in ("B:1:2", "B:1:x:3", "B:1:2:3:4:5", ""):
            with self.assertRaises(InputError, msg=text):
                parse_occupancy_spec(text)


if __name__ == "__main__":
    unittest.main()

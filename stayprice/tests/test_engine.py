"""
test_engine.py: End-to-end pricing runs against the fixture documents,
plus the restriction lookups and money rounding helpers.
"""

import os
import unittest
from dataclasses import FrozenInstanceError

from stayprice._types import RuleStatus
from stayprice.engine.match_engine import (
    MatchEngine, find_offer_restrictions, find_rule_restrictions, match_stay, price_stay,
    round2, round3, to_fixed,
)
from stayprice.engine.stay import build_stay_request
from stayprice.errors import MatchExclusion
from stayprice.interpreter.offer_interpreter import OfferRestrictions
from stayprice.interpreter.plan_extractor import extract_plans
from stayprice.interpreter.rule_interpreter import BookingRule
from stayprice.trace import TraceCollector
from stayprice.utilities.tree import decode_xml, load_document

DATA_DIR = os.path.join(os.path.dirname(__file__), "data")

OCCUPANCY_B = [("B", 1, 2, 3, None)]


def fixture_path(name):
    return os.path.join(DATA_DIR, name)


def fixture_text(name):
    with open(fixture_path(name), "r", encoding="utf-8") as f:
        return f.read()


def stay(adults=2, children=(), arrival="2025-03-22", departure="2025-03-29",
         booking_date="2025-01-01", occupancy=None):
    return build_stay_request(
        arrival, departure, adults, children, booking_date=booking_date,
        occupancy=OCCUPANCY_B if occupancy is None else occupancy,
    )


def run(root, request):
    trace = TraceCollector()
    result = price_stay(root, request, trace)
    return result, trace.matching_text()


def single_plan_document(rates_xml, offer_rule_attrs=""):
    return decode_xml(
        "<OTA_HotelRatePlanNotifRQ><RatePlans>"
        '<RatePlan RatePlanNotifType="New" CurrencyCode="EUR" RatePlanCode="Inline">'
        f"<Rates>{rates_xml}</Rates>"
        f'<Offers><Offer><OfferRules><OfferRule {offer_rule_attrs}><Occupancy AgeQualifyingCode="10"/>'
        "</OfferRule></OfferRules></Offer></Offers>"
        "</RatePlan></RatePlans></OTA_HotelRatePlanNotifRQ>"
    )


WEEKLY_RATES = (
    '<Rate RateTimeUnit="Day" UnitMultiplier="7"><BaseByGuestAmts><BaseByGuestAmt Type="25"/></BaseByGuestAmts></Rate>'
    '<Rate InvTypeCode="B" Start="2025-01-01" End="2025-12-31"><BaseByGuestAmts>'
    '<BaseByGuestAmt NumberOfGuests="2" AgeQualifyingCode="10" AmountAfterTax="700"/>'
    "</BaseByGuestAmts></Rate>"
)

NIGHTLY_RATES = WEEKLY_RATES.replace('UnitMultiplier="7"', 'UnitMultiplier="1"').replace('"700"', '"80"')


class TestBasicPricing(unittest.TestCase):
    def setUp(self):
        self.root = load_document(fixture_path("basic.xml"))

    def test_two_adults(self):
        result, text = run(self.root, stay())
        self.assertEqual(result.to_dict(), {"B": 700.0})
        self.assertEqual(result.priced_by, {"B": "Basic"})
        self.assertEqual(result.exclusions, [])
        self.assertTrue(text.startswith("protocol version 2017-10, booking date 2025-01-01\n"))
        self.assertIn("total cost:  700.00 EUR", text)

    def test_extra_adult(self):
        result, _ = run(self.root, stay(adults=3))
        self.assertEqual(result.prices, {"B": 1050.0})

    def test_child_bracket(self):
        result, text = run(self.root, stay(children=[5]))
        self.assertEqual(result.prices, {"B": 840.0})
        self.assertIn("(ages: 5)", text)

    def test_child_promoted_to_adult(self):
        request = stay(adults=1, children=[10, 4], occupancy=[("B", 2, 2, 3, 1)])
        result, text = run(self.root, request)
        self.assertEqual(result.prices, {"B": 840.0})
        self.assertIn("children were transformed to adults", text)
        self.assertIn("effective guests: 2 adults(s) and 1 child(ren) (ages: 4)", text)

    def test_adult_aged_child_excluded(self):
        result, _ = run(self.root, stay(children=[18]))
        self.assertEqual(result.prices, {})
        self.assertEqual(len(result.exclusions), 1)
        self.assertIn("all guests >= 18", result.exclusions[0].reason)

    def test_too_many_guests(self):
        result, _ = run(self.root, stay(adults=4))
        self.assertEqual(result.prices, {})
        self.assertIn("exceeds the inventory occupancy maximum", result.exclusions[0].reason)

    def test_too_few_guests(self):
        result, _ = run(self.root, stay(adults=1, occupancy=[("B", 2, 2, 3, None)]))
        self.assertIn("less than the inventory occupancy minimum", result.exclusions[0].reason)

    def test_missing_inventory_occupancy(self):
        result, text = run(self.root, stay(occupancy=[("S", 1, 2, 3, None)]))
        self.assertEqual(result.prices, {})
        self.assertEqual(result.exclusions, [MatchExclusion("Basic", "B", "no inventory occupancy for this code")])
        self.assertIn("no inventory occupancy for this code -> skipping", text)

    def test_exclusion_record(self):
        result, _ = run(self.root, stay(occupancy=[("S", 1, 2, 3, None)]))
        exclusion = result.exclusions[0]
        with self.assertRaises(FrozenInstanceError):
            exclusion.reason = "changed"
        self.assertEqual(
            repr(exclusion),
            "MatchExclusion(plan_code='Basic', room_type='B', reason='no inventory occupancy for this code')",
        )
        self.assertEqual(len({exclusion, MatchExclusion("Basic", "B", "no inventory occupancy for this code")}), 1)

    def test_repeated_runs_are_identical(self):
        plans = extract_plans(self.root)
        request = stay(children=[5])
        engine = MatchEngine(plans, request)
        first, second = TraceCollector(), TraceCollector()
        a = engine.run(first)
        b = engine.run(second)
        self.assertEqual(a.prices, b.prices)
        self.assertEqual(first.matching, second.matching)

    def test_no_plans(self):
        result = match_stay((), stay())
        self.assertEqual(result.prices, {})
        self.assertEqual(len(result.trace.matching), 1)


class TestDiscounts(unittest.TestCase):
    def test_family_discount(self):
        root = load_document(fixture_path("family.xml"))
        result, text = run(root, stay(children=[5]))
        self.assertEqual(result.prices, {"B": 700.0})
        self.assertIn("family discount applied, 1 child removed", text)

    def test_family_discount_needs_young_child(self):
        root = load_document(fixture_path("family.xml"))
        result, text = run(root, stay(children=[14]))
        self.assertEqual(result.prices, {"B": 980.0})
        self.assertNotIn("family discount", text)

    def test_free_last_night(self):
        root = load_document(fixture_path("free_nights.xml"))
        result, text = run(root, stay())
        self.assertEqual(result.prices, {"B": 600.0})
        self.assertIn("(non-repeating free nights discount applies)", text)

    def test_free_nights_need_long_enough_stay(self):
        root = load_document(fixture_path("free_nights.xml"))
        result, text = run(root, stay(departure="2025-03-28"))
        self.assertEqual(result.prices, {"B": 600.0})
        self.assertNotIn("free nights discount applies", text)

    def test_free_child_counts_in_per_guest_lookup(self):
        # std 3, max 4 and max child 2 need only the two adults as full payers
        text = fixture_text("family.xml").replace(
            '<BaseByGuestAmt NumberOfGuests="2" AgeQualifyingCode="10" AmountAfterTax="50"/>',
            '<BaseByGuestAmt NumberOfGuests="2" AgeQualifyingCode="10" AmountAfterTax="50"/>'
            '<BaseByGuestAmt NumberOfGuests="3" AgeQualifyingCode="10" AmountAfterTax="30"/>',
        )
        request = stay(children=[5], occupancy=[("B", 1, 3, 4, 2)])
        result, trace_text = run(decode_xml(text), request)
        # key min(2 + 0 + 1, 3) = 3: 90 * 2 / 3 per night
        self.assertEqual(result.prices, {"B": 420.0})
        self.assertIn("family discount applied, 1 child removed", trace_text)
        self.assertIn("  60.000 EUR for 2025-03-22 (1 nights)", trace_text)

    def test_repeating_free_nights(self):
        text = fixture_text("free_nights.xml").replace(
            'NightsDiscounted="1"/>', 'NightsDiscounted="1" DiscountPattern="0000001"/>'
        )
        result, trace_text = run(decode_xml(text), stay(departure="2025-04-05"))
        self.assertEqual(result.prices, {"B": 1200.0})
        self.assertEqual(trace_text.count("(repeating free nights discount applies)"), 2)


class TestBookingRules(unittest.TestCase):
    def test_closed_room_type(self):
        result, text = run(load_document(fixture_path("closed.xml")), stay())
        self.assertEqual(result.prices, {})
        self.assertEqual(
            result.exclusions, [MatchExclusion("Closed", "B", "master restriction status closed for 2025-03-22")]
        )
        self.assertIn("stay is restricted by booking rules", text)

    def test_open_room_type(self):
        text = fixture_text("closed.xml").replace('Status="Close"', 'Status="Open"')
        result, trace_text = run(decode_xml(text), stay())
        self.assertEqual(result.prices, {"B": 700.0})
        self.assertIn("stay is not restricted by any booking rule", trace_text)


class TestSupplements(unittest.TestCase):
    def setUp(self):
        self.root = load_document(fixture_path("supplements.xml"))

    def test_mandatory_supplements(self):
        result, text = run(self.root, stay())
        self.assertEqual(result.prices, {"B": 868.0})
        self.assertEqual(text.count('"0x5" (assuming the item count is 1)'), 1)
        self.assertIn('for "0x6" (not applicable due to ALPINEBITSDOW pattern) on 2025-03-24', text)
        self.assertNotIn('"0x7"', text)
        self.assertIn("total contribution  168.000 EUR", text)

    def test_free_night_waives_nightly_supplements(self):
        extras = (
            "<Supplements>"
            '<Supplement InvType="EXTRA" InvCode="0x1" ChargeTypeCode="1" AddToBasicRateIndicator="true" MandatoryIndicator="true"/>'
            '<Supplement InvType="EXTRA" InvCode="0x1" Start="2025-01-01" End="2025-12-31" Amount="5"/>'
            '<Supplement InvType="EXTRA" InvCode="0x2" ChargeTypeCode="18" AddToBasicRateIndicator="true" MandatoryIndicator="true"/>'
            '<Supplement InvType="EXTRA" InvCode="0x2" Start="2025-01-01" End="2025-12-31" Amount="70"/>'
            '<Supplement InvType="EXTRA" InvCode="0x3" ChargeTypeCode="21" AddToBasicRateIndicator="true" MandatoryIndicator="true"/>'
            '<Supplement InvType="EXTRA" InvCode="0x3" Start="2025-01-01" End="2025-12-31" Amount="2"/>'
            '<Supplement InvType="EXTRA" InvCode="0x4" ChargeTypeCode="19" AddToBasicRateIndicator="true" MandatoryIndicator="true"/>'
            '<Supplement InvType="EXTRA" InvCode="0x4" Start="2025-01-01" End="2025-12-31" Amount="4"/>'
            "</Supplements>"
        )
        text = fixture_text("free_nights.xml").replace("<Rates>", extras + "<Rates>")
        result, trace_text = run(decode_xml(text), stay())
        # rates 6 * 100, then 6 * 5 + 70 + 6 * 2 * 2 + 6 * 4; the last night is free
        self.assertEqual(result.prices, {"B": 748.0})
        self.assertEqual(trace_text.count("(free nights discount applies) on 2025-03-28"), 3)
        for code in ("0x1", "0x3", "0x4"):
            self.assertIn(f'   0.000 EUR for "{code}" (free nights discount applies) on 2025-03-28', trace_text)
        self.assertIn('for "0x2" which is 1/7 of the amount per stay in this period (70 EUR) on 2025-03-28', trace_text)
        self.assertIn("total contribution  148.000 EUR", trace_text)

    def test_rate_gap(self):
        result, _ = run(self.root, stay(arrival="2025-06-28", departure="2025-07-02"))
        self.assertEqual(result.prices, {})
        self.assertEqual(result.exclusions[0].reason, "first unmatched date is 2025-07-01")

    def test_children_not_allowed(self):
        result, _ = run(self.root, stay(children=[5]))
        self.assertEqual(result.prices, {})
        self.assertIn("all guests are considered adults", result.exclusions[0].reason)


class TestMultiplePlans(unittest.TestCase):
    def test_later_plan_overrides(self):
        result, text = run(load_document(fixture_path("two_plans.xml")), stay())
        self.assertEqual(result.to_dict(), {"B": 840.0})
        self.assertEqual(result.priced_by, {"B": "Late"})
        self.assertEqual(result.overrides, [("B", "Early", 700.0, "Late", 840.0)])
        self.assertEqual(result.exclusions, [MatchExclusion("Early", "S", "no inventory occupancy for this code")])
        self.assertIn("overrides 700.00 EUR from RatePlanCode = Early", text)

    def test_json_document(self):
        result, _ = run(load_document(fixture_path("late.json")), stay())
        self.assertEqual(result.prices, {"B": 840.0})


class TestRateUnits(unittest.TestCase):
    def test_full_unit(self):
        result, text = run(single_plan_document(WEEKLY_RATES), stay())
        self.assertEqual(result.prices, {"B": 700.0})
        self.assertIn("(7 nights)", text)

    def test_fractional_unit(self):
        result, text = run(single_plan_document(WEEKLY_RATES), stay(departure="2025-03-25"))
        self.assertEqual(result.prices, {"B": 300.0})
        self.assertIn("(fraction 3/7)", text)

    def test_missing_base_amount(self):
        result, _ = run(single_plan_document(NIGHTLY_RATES), stay(adults=1))
        self.assertEqual(
            result.exclusions[0].reason,
            "first unmatched date is 2025-03-22, no BaseByGuestAmt with NumberOfGuests = 1 found",
        )

    def test_missing_adult_amount(self):
        result, _ = run(single_plan_document(NIGHTLY_RATES), stay(adults=3))
        self.assertIn("no AdditionalGuestAmount found (for adults above std occupancy)", result.exclusions[0].reason)


class TestAdvanceBooking(unittest.TestCase):
    def setUp(self):
        self.root = single_plan_document(NIGHTLY_RATES, 'MinAdvancedBookingOffset="P30D"')

    def test_booked_too_late(self):
        result, _ = run(self.root, stay(booking_date="2025-03-10"))
        self.assertEqual(result.prices, {})
        self.assertEqual(
            result.exclusions[0].reason,
            "OfferRule restrictions: cannot book 12 day(s) in advance if MinAdvancedBookingOffset is 30",
        )

    def test_booked_early_enough(self):
        result, _ = run(self.root, stay(booking_date="2025-01-01"))
        self.assertEqual(result.prices, {"B": 560.0})


def booking_rule(**kwargs):
    values = dict(room_type=None, start="2025-01-01", end="2025-12-31")
    values.update(kwargs)
    return BookingRule(**values)


SATURDAY_OFF = (True, True, True, True, True, True, False)


class TestRestrictionLookups(unittest.TestCase):
    def test_no_rules(self):
        self.assertIsNone(find_rule_restrictions("2025-03-22", "2025-03-29", ()))

    def test_closed_departure_day_is_not_a_stay_night(self):
        rules = (booking_rule(start="2025-03-29", end="2025-03-31", status=RuleStatus.CLOSED),)
        self.assertIsNone(find_rule_restrictions("2025-03-22", "2025-03-29", rules))
        self.assertEqual(
            find_rule_restrictions("2025-03-22", "2025-03-30", rules),
            "master restriction status closed for 2025-03-29",
        )

    def test_weekdays(self):
        self.assertEqual(
            find_rule_restrictions("2025-03-22", "2025-03-28", (booking_rule(arrival_days=SATURDAY_OFF),)),
            "arrival dow restriction applies",
        )
        self.assertEqual(
            find_rule_restrictions("2025-03-21", "2025-03-29", (booking_rule(departure_days=SATURDAY_OFF),)),
            "departure dow restriction applies",
        )

    def test_length_of_stay(self):
        self.assertEqual(
            find_rule_restrictions("2025-03-22", "2025-03-29", (booking_rule(min_los=10),)),
            "length of stay (7) is below minimum (10)",
        )
        self.assertEqual(
            find_rule_restrictions("2025-03-22", "2025-03-29", (booking_rule(max_los=5),)),
            "length of stay (7) is above maximum (5)",
        )
        # LOS is only checked by the rule covering the arrival date
        later = (booking_rule(start="2025-03-23", min_los=10),)
        self.assertIsNone(find_rule_restrictions("2025-03-22", "2025-03-29", later))

    def test_forward_stay_includes_departure(self):
        rules = (booking_rule(start="2025-03-29", end="2025-03-31", min_forward=10),)
        self.assertEqual(
            find_rule_restrictions("2025-03-22", "2025-03-29", rules),
            "on 2025-03-29, length of stay (7) is below forward minimum (10)",
        )

    def test_offer_restrictions(self):
        self.assertIsNone(find_offer_restrictions("2025-03-22", "2025-03-29", OfferRestrictions()))
        self.assertEqual(
            find_offer_restrictions("2025-03-22", "2025-03-29", OfferRestrictions(max_los=5)),
            "length of stay (7) exceeds maximum (5)",
        )
        self.assertEqual(
            find_offer_restrictions("2025-03-22", "2025-03-29", OfferRestrictions(arrival_days=SATURDAY_OFF)),
            "arrival dow is forbidden",
        )


class TestMoney(unittest.TestCase):
    def test_half_up(self):
        self.assertEqual(to_fixed(2.5, 0), "3")
        self.assertEqual(to_fixed(0.125, 2), "0.13")
        self.assertEqual(to_fixed(700, 2), "700.00")

    def test_exact_binary_value(self):
        # 1.005 is stored as 1.00499999...
        self.assertEqual(to_fixed(1.005, 2), "1.00")

    def test_rounders(self):
        self.assertEqual(round3(1 / 3), 0.333)
        self.assertEqual(round2(299.99999999999994), 300.0)


if __name__ == "__main__":
    unittest.main()

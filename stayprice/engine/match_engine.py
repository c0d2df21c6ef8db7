"""
match_engine.py

The pricing run: for every RatePlan (document order) and every room type
of its rates (first-seen order) screen the stay, transform and discount the
guests, match rates and mandatory supplements date by date and store the
total. A failed screen excludes that (RatePlan, room type) pair with a
reason and the run goes on with the next room type.

Intermediate amounts are shown and subtotalled at 3 decimals, the total is
rounded to 2 decimals. Rounding is done on the exact binary value of the
float, half up, via decimal.Decimal.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from stayprice._types import BaseAmountScheme, ChargeType
from stayprice.errors import MatchExclusion
from stayprice.engine.result import MatchResult
from stayprice.interpreter.plan_extractor import extract_plans
from stayprice.trace import TraceCollector, amount_text
from stayprice.utilities import dates

logger = logging.getLogger(__name__)


############################################################
#   money
############################################################

def to_fixed(value: float, places: int) -> str:
    """
    Fixed point representation of 'value' with 'places' decimals, rounding half up.
    """
    exponent = Decimal(1).scaleb(-places)
    return str(Decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))


def round3(value: float) -> float:
    return float(to_fixed(value, 3))


def round2(value: float) -> float:
    return float(to_fixed(value, 2))


def _fmt3(value: float) -> str:
    return f"{to_fixed(value, 3):>8}"


def _fmt2(value: float) -> str:
    return f"{to_fixed(value, 2):>7}"


def _ages(ages) -> str:
    return ", ".join(str(a) for a in ages)


class _Skip(Exception):
    """
    Internal signal: the current room type is excluded for the given reason.
    """

    def __init__(self, reason: str, line: str = None):
        super().__init__(reason)
        self.reason = reason
        self.line = line


############################################################
#   match engine
############################################################

class MatchEngine:
    """
    Runs one stay against a tuple of validated RatePlanEntity objects.
    An engine instance holds no state between run() calls.
    """

    def __init__(self, plans, stay):
        self.plans = tuple(plans)
        self.stay = stay

    def run(self, trace: TraceCollector = None) -> MatchResult:
        result = MatchResult(trace)
        trace = result.trace
        trace.match(f"protocol version {self.stay.protocol_version}, booking date {self.stay.booking_date}")

        for i, plan in enumerate(self.plans, start=1):
            trace.match(f"RatePlan {i}/{len(self.plans)} (RatePlanCode = {plan.code}):")
            for room_type in plan.room_types:
                trace.match(f"    +-- InvTypeCode = {room_type}:")
                logger.debug("matching RatePlan %s, room type %s", plan.code, room_type)
                try:
                    price = self._match_room_type(plan, room_type, trace)
                except _Skip as skip:
                    trace.match(skip.line or f"            +-- {skip.reason} -> skipping")
                    result.record_exclusion(MatchExclusion(plan.code, room_type, skip.reason))
                    continue
                if room_type in result.prices:
                    trace.match(
                        f"        +-- overrides {result.prices[room_type]:.2f} EUR from "
                        f"RatePlanCode = {result.priced_by[room_type]}"
                    )
                result.record_price(plan.code, room_type, price)
        return result

    ############################################################
    #   steps
    ############################################################

    def _match_room_type(self, plan, room_type: str, trace) -> float:
        stay = self.stay
        offers = plan.offers

        occupancy = stay.occupancy_for(room_type)
        if occupancy is None:
            raise _Skip(
                "no inventory occupancy for this code",
                "        +-- no inventory occupancy for this code -> skipping",
            )
        full_payers = occupancy.full_payers_needed()
        trace.match(
            f"        +-- inventory occupancy: min = {occupancy.min_occupancy}, std = {occupancy.std_occupancy}, "
            f"max = {occupancy.max_occupancy}, max child occupancy = {occupancy.max_child_occupancy}, "
            f"min full rate payers = {full_payers}"
        )

        children = stay.children_ages
        line = f"        +-- guests: {stay.num_adults} adults(s) and {len(children)} child(ren)"
        if children:
            line += f" (ages: {_ages(children)})"
        trace.match(line)

        self._screen_total(occupancy)
        self._screen_guests(offers.restrictions)
        self._screen_offer_rule(offers.restrictions)

        eff_adults, eff_children = self._promote_children(full_payers, trace)
        eff_children, free_kids = self._apply_family_discount(offers.family, eff_adults, eff_children, trace)

        trace.match(
            f"        +-- stay: arrival on {stay.arrival}, departure on {stay.departure} ({stay.nights} night(s))"
        )

        reason = find_rule_restrictions(stay.arrival, stay.departure, plan.booking_rules.applicable(room_type))
        if reason is not None:
            raise _Skip(
                reason, f"            +-- stay is restricted by booking rules ({reason}) -> skipping"
            )
        trace.match("            +-- stay is not restricted by any booking rule")

        rate_total, free_dates, details = self._match_rates(
            plan, room_type, occupancy, eff_adults, eff_children, free_kids
        )
        trace.match(f"        +-- matching rates for the stay (total contribution {_fmt3(rate_total)} EUR):")
        for detail in details:
            trace.match(f"            +-- {detail}")

        supp_total, details = self._match_supplements(
            plan, room_type, eff_adults + len(eff_children), free_dates
        )
        if not details:
            trace.match("        +-- no matching, mandatory supplements for the stay")
        else:
            trace.match(
                f"        +-- matching, mandatory supplements for the stay (total contribution {_fmt3(supp_total)} EUR):"
            )
            for detail in details:
                trace.match(f"            +-- {detail}")

        total = round2(rate_total + supp_total)
        trace.match(f"        +-- total cost: {_fmt2(rate_total + supp_total)} EUR")
        return total

    def _screen_total(self, occupancy):
        count = self.stay.guest_count
        if count < occupancy.min_occupancy:
            raise _Skip("the total number of guests is less than the inventory occupancy minimum")
        if count > occupancy.max_occupancy:
            raise _Skip("the total number of guests exceeds the inventory occupancy maximum")

    def _screen_guests(self, r):
        adults, children = self.stay.num_adults, self.stay.children_ages

        if r.adult_min_age is None and children:
            raise _Skip(
                "according to OfferRule restrictions, all guests are considered adults - "
                "however, children are present in the stay"
            )
        if r.adult_min_age is not None:
            for age in children:
                if age >= r.adult_min_age:
                    raise _Skip(
                        f"according to OfferRule restrictions, all guests >= {r.adult_min_age} are to be "
                        f"considered adults - however a child with age ({age}) is present in the stay"
                    )

        for age in children:
            if r.child_min_age is not None and age < r.child_min_age:
                raise _Skip(
                    f"guest child age ({age}) conflicts with OfferRule minimum child age ({r.child_min_age})"
                )
            if r.child_max_age is not None and age >= r.child_max_age:
                raise _Skip(
                    f"guest child age ({age}) conflicts with OfferRule maximum child age ({r.child_max_age})"
                )

        if r.adult_min_occupancy is not None and adults < r.adult_min_occupancy:
            raise _Skip("OfferRule restrictions: adult MinOccupancy not reached")
        if r.adult_max_occupancy is not None and adults > r.adult_max_occupancy:
            raise _Skip("OfferRule restrictions: adult MaxOccupancy exceeded")
        if r.child_min_occupancy is not None and len(children) < r.child_min_occupancy:
            raise _Skip("OfferRule restrictions: children MinOccupancy not reached")
        if r.child_max_occupancy is not None and len(children) > r.child_max_occupancy:
            raise _Skip("OfferRule restrictions: children MaxOccupancy exceeded")

    def _screen_offer_rule(self, r):
        stay = self.stay
        reason = find_offer_restrictions(stay.arrival, stay.departure, r)
        if reason is not None:
            raise _Skip(reason, f"            +-- stay is restricted by OfferRule ({reason}) -> skipping")

        advance = dates.days_between(stay.booking_date, stay.arrival)
        if r.min_advance is not None and advance < r.min_advance:
            raise _Skip(
                f"OfferRule restrictions: cannot book {advance} day(s) in advance "
                f"if MinAdvancedBookingOffset is {r.min_advance}"
            )
        if r.max_advance is not None and advance > r.max_advance:
            raise _Skip(
                f"OfferRule restrictions: cannot book {advance} day(s) in advance "
                f"if MaxAdvancedBookingOffset is {r.max_advance}"
            )

    def _promote_children(self, full_payers: int, trace):
        """
        Turn the oldest children into adults until enough full rate payers are present.
        """
        eff_adults = self.stay.num_adults
        eff_children = sorted(self.stay.children_ages)
        while eff_adults < full_payers and eff_children:
            eff_children.pop()
            eff_adults += 1

        if eff_adults != self.stay.num_adults:
            trace.match("            +-- children were transformed to adults")
            trace.match(
                f"            +-- effective guests: {eff_adults} adults(s) and {len(eff_children)} child(ren) "
                f"(ages: {_ages(eff_children)})"
            )
        return eff_adults, eff_children

    def _apply_family_discount(self, family, eff_adults: int, eff_children: list, trace):
        """
        Remove up to free_count qualifying children, scanning left to right.
        Returns the remaining children and the number removed.
        """
        if family is None:
            return eff_children, 0

        qualifying = sum(1 for age in eff_children if age < family.max_age)
        if qualifying < 1 or qualifying < family.min_count:
            return eff_children, 0

        children = list(eff_children)
        removed = 0
        while removed < qualifying and removed < family.free_count:
            for k, age in enumerate(children):
                if age < family.max_age:
                    del children[k]
                    removed += 1
                    break

        noun = "child" if removed == 1 else "children"
        trace.match(
            f"            +-- family discount applied, {removed} {noun} removed "
            f"(below age {family.max_age}, staying free)"
        )
        trace.match(
            f"            +-- effective guests: {eff_adults} adults(s) and {len(children)} child(ren) "
            f"(ages: {_ages(children)})"
        )
        return children, removed

    ############################################################
    #   rates
    ############################################################

    def _price_chunk(self, rate, occupancy, eff_adults, eff_children, free_kids, chunk_weight):
        """
        Price one chunk with one rate. Returns (cost, items), or (None, reason suffix)
        when the rate has no amount for some of the guests.
        """
        cost = 0
        items = []

        base_adults = min(eff_adults, occupancy.std_occupancy)
        if base_adults > 0:
            if rate.scheme is BaseAmountScheme.PER_GUEST:
                key = min(eff_adults + len(eff_children) + free_kids, occupancy.std_occupancy)
                amount = rate.base_amounts.get(key)
                if amount is None:
                    return None, f", no BaseByGuestAmt with NumberOfGuests = {key} found"
                am = amount * chunk_weight * base_adults / key
            else:
                amount = rate.base_amounts.get(base_adults)
                if amount is None:
                    return None, f", no BaseByGuestAmt with NumberOfGuests = {base_adults} found"
                am = amount * chunk_weight
            cost += am
            items.append(_fmt3(am))

        extra_adults = eff_adults - base_adults
        if extra_adults > 0:
            adult = rate.adult_amount
            if adult is None:
                return None, ", no AdditionalGuestAmount found (for adults above std occupancy)"
            am = extra_adults * adult.amount * chunk_weight
            cost += am
            items.append(_fmt3(am))

        for age in eff_children:
            bracket = rate.child_amount(age)
            if bracket is None:
                return None, f", no AdditionalGuestAmount found for child aged {age}"
            am = bracket.amount * chunk_weight
            cost += am
            items.append(_fmt3(am))

        return cost, items

    def _match_rates(self, plan, room_type, occupancy, eff_adults, eff_children, free_kids):
        stay = self.stay
        for i in range(1, len(eff_children)):
            if eff_children[i] < eff_children[i - 1]:
                raise RuntimeError("[MatchEngine] children are not sorted in _match_rates() - this is a bug, please report it")

        rates = plan.rates.intervals_for(room_type)
        free_nights = plan.offers.free_nights
        nights = stay.nights

        total = 0
        details = []
        free_dates = set()

        dt = stay.arrival
        while dates.days_between(dt, stay.departure) > 0:
            rate = None
            for candidate in rates:
                if dates.date_between(candidate.start, candidate.end, dt):
                    rate = candidate
                    break
            if rate is None:
                raise _Skip(
                    f"first unmatched date is {dt}",
                    f"            +-- no matching rates for the stay (first unmatched date is {dt}) -> skipping",
                )

            chunk = min(dates.days_between(dt, stay.departure), dates.days_between(dt, rate.end) + 1, rate.night_count)
            if chunk < 1:
                raise RuntimeError(f"[MatchEngine] unexpected chunk value {chunk} - this is a bug, please report it")
            chunk_weight = chunk / rate.night_count

            cost, items = self._price_chunk(rate, occupancy, eff_adults, eff_children, free_kids, chunk_weight)
            if cost is None:
                reason = f"first unmatched date is {dt}{items}"
                raise _Skip(reason, f"            +-- no matching rates for the stay ({reason}) -> skipping")

            matched_by = f"for {dt} ({chunk} nights) matched by rate {rate.start} .. {rate.end}"
            free_kind = None
            if free_nights is not None and nights >= free_nights.nights_required and chunk == 1:
                if free_nights.repeating:
                    index = dates.days_between(stay.arrival, dt) % free_nights.nights_required
                    if index >= free_nights.nights_required - free_nights.nights_discounted:
                        free_kind = "repeating"
                elif dates.days_between(dt, stay.departure) <= free_nights.nights_discounted:
                    free_kind = "non-repeating"

            if free_kind is not None:
                details.append(f"{_fmt3(0.0)} EUR {matched_by} ({free_kind} free nights discount applies)")
                free_dates.add(dt)
            else:
                fraction = f"(fraction {chunk}/{rate.night_count}) " if abs(chunk_weight - 1) > 0.0001 else ""
                details.append(f"{_fmt3(cost)} EUR {fraction}{matched_by} ({' + '.join(items)})")
                total += cost

            dt = dates.add_days(dt, chunk)

        return round3(total), free_dates, details

    ############################################################
    #   supplements
    ############################################################

    def _match_supplements(self, plan, room_type, pax, free_dates):
        stay = self.stay
        nights = stay.nights
        total = 0
        details = []

        for group in plan.supplements.mandatory:
            code = group.code
            for dt in dates.iter_dates(stay.arrival, stay.departure):
                if not group.applies_on(dates.weekday_index(dt)):
                    details.append(f'{_fmt3(0.0)} EUR for "{code}" (not applicable due to ALPINEBITSDOW pattern) on {dt}')
                    continue
                if not any(a.applies_to(room_type, dt) for a in group.amounts):
                    continue
                amount = group.amount_on(room_type, dt)

                ctc = group.charge_type
                if ctc in (ChargeType.PER_DAY, ChargeType.PER_ROOM_PER_NIGHT):
                    if dt in free_dates:
                        details.append(f'{_fmt3(0.0)} EUR for "{code}" (free nights discount applies) on {dt}')
                    else:
                        details.append(f'{_fmt3(amount)} EUR for "{code}" on {dt}')
                        total += amount
                elif ctc in (ChargeType.PER_STAY, ChargeType.PER_ROOM_PER_STAY):
                    am = amount / nights
                    details.append(
                        f'{_fmt3(am)} EUR for "{code}" which is 1/{nights} of the amount per stay '
                        f"in this period ({amount_text(amount)} EUR) on {dt}"
                    )
                    total += am
                elif ctc is ChargeType.PER_PERSON_PER_STAY:
                    am = amount * pax / nights
                    details.append(
                        f'{_fmt3(am)} EUR for "{code}" which is 1/{nights} of the amount per stay '
                        f"in this period ({amount_text(amount)} EUR) on {dt} times the guest count ({pax})"
                    )
                    total += am
                elif ctc is ChargeType.PER_PERSON_PER_NIGHT:
                    if dt in free_dates:
                        details.append(f'{_fmt3(0.0)} EUR for "{code}" (free nights discount applies) on {dt}')
                    else:
                        am = amount * pax
                        details.append(
                            f'{_fmt3(am)} EUR for "{code}" on {dt} ({amount_text(amount)} EUR) times the guest count ({pax})'
                        )
                        total += am
                elif ctc is ChargeType.PER_ITEM:
                    details.append(f'{_fmt3(amount)} EUR for "{code}" (assuming the item count is 1)')
                    total += amount
                    break
                else:
                    raise RuntimeError(f"[MatchEngine] unexpected ChargeTypeCode {ctc} - this is a bug, please report it")

        return round3(total), details


############################################################
#   restriction lookups
############################################################

def find_rule_restrictions(arrival: str, departure: str, rules):
    """
    Return the reason the BookingRules deny the stay, or None.
    'rules' are the room type specific rules followed by the generic ones.
    """
    los = dates.days_between(arrival, departure)

    for dt in dates.iter_dates(arrival, departure):
        for rule in rules:
            if rule.closed and dates.date_between(rule.start, rule.end, dt):
                return f"master restriction status closed for {dt}"

    for rule in rules:
        if dates.date_between(rule.start, rule.end, departure):
            if not rule.departure_days[dates.day_of_week(departure)]:
                return "departure dow restriction applies"
        if dates.date_between(rule.start, rule.end, arrival):
            if not rule.arrival_days[dates.day_of_week(arrival)]:
                return "arrival dow restriction applies"
            if rule.min_los is not None and los < rule.min_los:
                return f"length of stay ({los}) is below minimum ({rule.min_los})"
            if rule.max_los is not None and los > rule.max_los:
                return f"length of stay ({los}) is above maximum ({rule.max_los})"

    for dt in dates.iter_dates(arrival, departure, include_end=True):
        for rule in rules:
            if not dates.date_between(rule.start, rule.end, dt):
                continue
            if rule.min_forward is not None and los < rule.min_forward:
                return f"on {dt}, length of stay ({los}) is below forward minimum ({rule.min_forward})"
            if rule.max_forward is not None and los > rule.max_forward:
                return f"on {dt}, length of stay ({los}) is above forward maximum ({rule.max_forward})"

    return None


def find_offer_restrictions(arrival: str, departure: str, restrictions):
    """
    Return the reason the OfferRule denies the stay (LOS, arrival/departure weekday), or None.
    """
    los = dates.days_between(arrival, departure)
    if restrictions.min_los is not None and los < restrictions.min_los:
        return f"length of stay ({los}) is below minimum ({restrictions.min_los})"
    if restrictions.max_los is not None and los > restrictions.max_los:
        return f"length of stay ({los}) exceeds maximum ({restrictions.max_los})"
    if not restrictions.arrival_days[dates.day_of_week(arrival)]:
        return "arrival dow is forbidden"
    if not restrictions.departure_days[dates.day_of_week(departure)]:
        return "departure dow is forbidden"
    return None


############################################################
#   entry points
############################################################

def match_stay(plans, stay, trace: TraceCollector = None) -> MatchResult:
    """
    Price 'stay' against already extracted RatePlanEntity objects.
    """
    return MatchEngine(plans, stay).run(trace)


def price_stay(root, stay, trace: TraceCollector = None) -> MatchResult:
    """
    Validate the rate plans document (generic tree rooted at OTA_HotelRatePlanNotifRQ)
    and price 'stay' against it. Validation narration goes to trace.validation,
    matching narration to trace.matching.
    """
    trace = trace if trace is not None else TraceCollector()
    plans = extract_plans(root, trace)
    return match_stay(plans, stay, trace)

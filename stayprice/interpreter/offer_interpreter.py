"""
offer_interpreter.py

Offers of one RatePlan. The first Offer carries the stay eligibility
restrictions (OfferRule), every following Offer carries exactly one
discount: "free nights" or "family".
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from stayprice._types import ALL_DAYS, AgeClass, WEEKDAY_ATTRS
from stayprice.errors import SchemaError
from stayprice.interpreter.constraints import (
    Attr, read_attrs, read_weekday_masks, read_lengths_of_stay, one_child,
    some_children, forbid_child, require_attrs, check_min_max,
)
from stayprice.interpreter.registry import register_interpreter

logger = logging.getLogger(__name__)

TAG = "[OfferInterpreter]"

MAX_GUEST_AGE = 18
MAX_OCCUPANCY = 99
MAX_NIGHTS = 365

OFFER_RULE_ATTRS = (
    Attr("MinAdvancedBookingOffset", "duration"),
    Attr("MaxAdvancedBookingOffset", "duration"),
)

ADULT_OCCUPANCY_ATTRS = (
    Attr("MinAge", "pos_int", high=MAX_GUEST_AGE),
    Attr("MaxAge", "absent"),
    Attr("MinOccupancy", "pos_int", high=MAX_OCCUPANCY),
    Attr("MaxOccupancy", "pos_int", high=MAX_OCCUPANCY),
)

CHILD_OCCUPANCY_ATTRS = (
    Attr("MinAge", "pos_int", high=MAX_GUEST_AGE),
    Attr("MaxAge", "pos_int", high=MAX_GUEST_AGE),
    Attr("MinOccupancy", "pos_int", high=MAX_OCCUPANCY),
    Attr("MaxOccupancy", "pos_int", high=MAX_OCCUPANCY),
)

DISCOUNT_ATTRS = (
    Attr("Percent", required=True, choices=("100",)),
    Attr("NightsRequired"),
    Attr("NightsDiscounted"),
    Attr("DiscountPattern"),
)

FREE_NIGHTS_ATTRS = (
    Attr("NightsRequired", "pos_int", required=True, high=MAX_NIGHTS),
    Attr("NightsDiscounted", "pos_int", required=True, high=MAX_NIGHTS),
)

FAMILY_GUEST_ATTRS = (
    Attr("AgeQualifyingCode", required=True, choices=(AgeClass.CHILD.value,)),
    Attr("MaxAge", "pos_int", required=True),
    Attr("MinCount", "nonneg_int", required=True),
    Attr("FirstQualifyingPosition", required=True, choices=("1",)),
    Attr("LastQualifyingPosition", "pos_int", required=True),
)


@dataclass(frozen=True)
class OfferRestrictions:
    min_los: Optional[int] = None
    max_los: Optional[int] = None
    arrival_days: Tuple[bool, ...] = ALL_DAYS
    departure_days: Tuple[bool, ...] = ALL_DAYS
    min_advance: Optional[int] = None
    max_advance: Optional[int] = None
    # guests younger than this are children; None means every guest is an adult
    adult_min_age: Optional[int] = None
    adult_min_occupancy: Optional[int] = None
    adult_max_occupancy: Optional[int] = None
    child_seen: bool = False
    child_min_age: Optional[int] = None
    child_max_age: Optional[int] = None
    child_min_occupancy: Optional[int] = None
    child_max_occupancy: Optional[int] = None


@dataclass(frozen=True)
class FreeNightsDiscount:
    nights_required: int
    nights_discounted: int
    pattern: Optional[str] = None

    @property
    def repeating(self) -> bool:
        return self.pattern is not None


@dataclass(frozen=True)
class FamilyDiscount:
    max_age: int
    min_count: int
    free_count: int


@dataclass(frozen=True)
class OfferDiscountModel:
    restrictions: OfferRestrictions
    free_nights: Optional[FreeNightsDiscount] = None
    family: Optional[FamilyDiscount] = None


############################################################
#   restrictions (first Offer)
############################################################

def _read_occupancies(rule, where: str) -> dict:
    nodes = some_children(rule, "Occupancy", where)
    if len(nodes) > 2:
        raise SchemaError(f"{where}: OfferRule must have one or two Occupancy elements")

    found = {}
    for node in nodes:
        require_attrs(node, where)
        code = node.get("AgeQualifyingCode")
        if code not in (AgeClass.ADULT.value, AgeClass.CHILD.value):
            raise SchemaError(f'{where}: attribute Occupancy -> AgeQualifyingCode must be "8" or "10"')
        if code in found:
            raise SchemaError(f'{where}: repeated Occupancy element with attribute AgeQualifyingCode="{code}"')
        occ_where = f'{where}: Occupancy element with attribute AgeQualifyingCode="{code}"'
        table = ADULT_OCCUPANCY_ATTRS if code == AgeClass.ADULT.value else CHILD_OCCUPANCY_ATTRS
        values = read_attrs(node, table, occ_where)
        check_min_max(values["MinOccupancy"], values["MaxOccupancy"], occ_where, "MinOccupancy/MaxOccupancy")
        if code == AgeClass.CHILD.value:
            min_age, max_age = values["MinAge"], values["MaxAge"]
            if min_age is not None and max_age is not None and min_age >= max_age:
                raise SchemaError(f"{occ_where}: inconsistent values for MinAge and MaxAge")
        found[code] = values

    if AgeClass.ADULT.value not in found:
        raise SchemaError(f'{where}: missing Occupancy element with attribute AgeQualifyingCode="10"')
    return found


def build_offer_restrictions(offer) -> OfferRestrictions:
    where = f"{TAG} invalid first Offer element"
    forbid_child(offer, "Discount", where)
    forbid_child(offer, "Guests", where)
    rules = one_child(offer, "OfferRules", where)
    rule = one_child(rules, "OfferRule", where)

    stays = read_lengths_of_stay(rule, where, ("SetMinLOS", "SetMaxLOS"))
    min_los, max_los = stays.get("SetMinLOS"), stays.get("SetMaxLOS")
    check_min_max(min_los, max_los, where, "LengthOfStay")

    arrival_days, departure_days = read_weekday_masks(rule, where)

    advance = read_attrs(rule, OFFER_RULE_ATTRS, where)
    min_advance, max_advance = advance["MinAdvancedBookingOffset"], advance["MaxAdvancedBookingOffset"]
    check_min_max(min_advance, max_advance, where, "advance booking offset")

    occupancies = _read_occupancies(rule, where)
    adult = occupancies[AgeClass.ADULT.value]
    child = occupancies.get(AgeClass.CHILD.value)
    adult_min_age = adult["MinAge"]

    if adult_min_age is None and child is not None:
        raise SchemaError(
            f'{where}: the Occupancy element with attribute AgeQualifyingCode="10" has no MinAge attribute, '
            f'but the one with AgeQualifyingCode="8" is also present'
        )
    if adult_min_age is not None and child is None:
        raise SchemaError(
            f'{where}: the Occupancy element with attribute AgeQualifyingCode="10" has a MinAge attribute, '
            f'but the one with AgeQualifyingCode="8" is not present'
        )
    child = child or dict.fromkeys(("MinAge", "MaxAge", "MinOccupancy", "MaxOccupancy"))
    if adult_min_age is not None and child["MaxAge"] is not None and child["MaxAge"] > adult_min_age:
        raise SchemaError(
            f'{where}: the Occupancy element with attribute AgeQualifyingCode="8" has a MaxAge value '
            f'that is > than the MinAge value for the one with AgeQualifyingCode="10"'
        )
    if adult_min_age is not None and child["MinAge"] is not None and child["MinAge"] >= adult_min_age:
        raise SchemaError(
            f'{where}: the Occupancy element with attribute AgeQualifyingCode="8" has a MinAge value '
            f'that is >= than the MinAge value for the one with AgeQualifyingCode="10"'
        )

    return OfferRestrictions(
        min_los=min_los,
        max_los=max_los,
        arrival_days=arrival_days,
        departure_days=departure_days,
        min_advance=min_advance,
        max_advance=max_advance,
        adult_min_age=adult_min_age,
        adult_min_occupancy=adult["MinOccupancy"],
        adult_max_occupancy=adult["MaxOccupancy"],
        child_seen=AgeClass.CHILD.value in occupancies,
        child_min_age=child["MinAge"],
        child_max_age=child["MaxAge"],
        child_min_occupancy=child["MinOccupancy"],
        child_max_occupancy=child["MaxOccupancy"],
    )


############################################################
#   discounts (following Offers)
############################################################

def build_free_nights(discount, where: str) -> FreeNightsDiscount:
    values = read_attrs(discount, FREE_NIGHTS_ATTRS, where)
    required, discounted = values["NightsRequired"], values["NightsDiscounted"]
    if discounted > required:
        raise SchemaError(f"{where}: NightsDiscounted cannot exceed NightsRequired")
    pattern = discount.get("DiscountPattern")
    if pattern is not None and pattern != "0" * (required - discounted) + "1" * discounted:
        raise SchemaError(f"{where}: inconsistent values for NightsRequired, NightsDiscounted and DiscountPattern")
    return FreeNightsDiscount(nights_required=required, nights_discounted=discounted, pattern=pattern)


def build_family(offer, where: str) -> FamilyDiscount:
    guests = one_child(offer, "Guests", where)
    guest = one_child(guests, "Guest", where)
    require_attrs(guest, where)
    values = read_attrs(guest, FAMILY_GUEST_ATTRS, f"{where}: Guest")
    if values["LastQualifyingPosition"] > values["MinCount"]:
        raise SchemaError(f"{where}: LastQualifyingPosition cannot exceed MinCount")
    return FamilyDiscount(
        max_age=values["MaxAge"],
        min_count=values["MinCount"],
        free_count=values["LastQualifyingPosition"],
    )


def interpret_offers(plan_node) -> OfferDiscountModel:
    """
    Validate the Offers section of a RatePlan element.
    """
    offers = one_child(plan_node, "Offers", f"{TAG} invalid RatePlan")
    offer_nodes = some_children(offers, "Offer", f"{TAG} invalid RatePlan")

    restrictions = build_offer_restrictions(offer_nodes[0])

    free_nights = None
    family = None
    for offer in offer_nodes[1:]:
        where = f"{TAG} invalid Offer"
        discount = one_child(offer, "Discount", where)
        require_attrs(discount, where)
        kinds = read_attrs(discount, DISCOUNT_ATTRS, f"{where}: Discount")
        required, discounted, pattern = kinds["NightsRequired"], kinds["NightsDiscounted"], kinds["DiscountPattern"]

        if not required and not discounted and not pattern:
            if family is not None:
                raise SchemaError(f'{where}: more than one discounts of type "family" detected')
            family = build_family(offer, where)
        elif required and discounted:
            if free_nights is not None:
                raise SchemaError(f'{where}: more than one discounts of type "free nights" detected')
            free_nights = build_free_nights(discount, f"{where}: Discount")
        else:
            raise SchemaError(f"{where}: type of discount cannot be determined from the attributes of the Discount element")

    logger.debug("%s free nights: %s, family: %s", TAG, free_nights, family)
    return OfferDiscountModel(restrictions=restrictions, free_nights=free_nights, family=family)


def _days(mask) -> str:
    return " ".join(day for day, allowed in zip(WEEKDAY_ATTRS, mask) if allowed) or "-"


def describe_offers(model: OfferDiscountModel) -> list:
    r = model.restrictions
    lines = [
        "    +-- OfferRule restrictions:",
        f"            | LOS:        {r.min_los} .. {r.max_los}",
        f"            | arr. DOW:   {_days(r.arrival_days)}",
        f"            | dep. DOW:   {_days(r.departure_days)}",
        f"            | adv.bk:     {r.min_advance} .. {r.max_advance}",
    ]
    if r.adult_min_age is None:
        lines.append("            | no Occupancy MinAge given: all guests are considered adults")
    else:
        lines.append(f"            | all guests < {r.adult_min_age} years old are considered children")
    if r.adult_min_occupancy is not None or r.adult_max_occupancy is not None:
        lines.append(f"            | adult occupancy restrictions: {r.adult_min_occupancy} .. {r.adult_max_occupancy}")
    else:
        lines.append("            | no adult occupancy restrictions")
    if r.child_min_age is not None or r.child_max_age is not None:
        lines.append(f"            | children ages are restricted to {r.child_min_age} <= age < {r.child_max_age}")
    else:
        lines.append("            | children ages are not restricted")
    if r.child_min_occupancy is not None or r.child_max_occupancy is not None:
        lines.append(f"            | children occupancy restrictions: {r.child_min_occupancy} .. {r.child_max_occupancy}")
    else:
        lines.append("            | no children occupancy restrictions")

    fn = model.free_nights
    if fn is not None:
        if fn.repeating:
            lines.append(
                f"    +-- Free nights discount: for each {fn.nights_required} night(s) of stay, the last "
                f"{fn.nights_discounted} night(s) are free (only where rates have UnitMultiplier == 1)"
            )
        else:
            lines.append(
                f"    +-- Free nights discount: the last {fn.nights_discounted} night(s) of the stay are free "
                f"(only where rates have UnitMultiplier == 1)"
            )
    fam = model.family
    if fam is not None:
        lines.append(
            f"    +-- Family discount:      {fam.free_count} child(ren) below age {fam.max_age} stay(s) free, "
            f"when at least {fam.min_count} child(ren) below that age is (are) present"
        )
    return lines


register_interpreter("offers", interpret_offers, describe_offers)

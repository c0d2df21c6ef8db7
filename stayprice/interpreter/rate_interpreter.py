"""
rate_interpreter.py

Builds the RateModel of one RatePlan: the "static" rate metadata (first Rate
element) and the dated, room-type tagged rate intervals (all following Rate
elements), validated and overlap-checked per room type.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from stayprice._types import AgeClass, BaseAmountScheme
from stayprice.errors import SchemaError
from stayprice.interpreter.constraints import (
    Attr, read_attrs, read_period, one_child, optional_child, some_children,
    require_attrs, check_no_overlap,
)
from stayprice.interpreter.registry import register_interpreter
from stayprice.trace import amount_text

logger = logging.getLogger(__name__)

TAG = "[RateInterpreter]"

MAX_UNIT_MULTIPLIER = 365
MAX_BRACKET_AGE = 21

STATIC_RATE_ATTRS = (
    Attr("InvTypeCode", "absent"),
    Attr("Start", "absent"),
    Attr("End", "absent"),
    Attr("RateTimeUnit", choices=("Day",)),
    Attr("UnitMultiplier", "pos_int", high=MAX_UNIT_MULTIPLIER),
)

STATIC_BASE_ATTRS = (
    Attr("Type", required=True, choices=tuple(s.value for s in BaseAmountScheme)),
)

BASE_AMOUNT_ATTRS = (
    Attr("NumberOfGuests", "pos_int", required=True),
    Attr("AgeQualifyingCode", required=True, choices=(AgeClass.ADULT.value,)),
    Attr("AmountAfterTax", "nonneg_decimal", required=True),
)

ADDITIONAL_AMOUNT_ATTRS = (
    Attr("AgeQualifyingCode", required=True, choices=tuple(a.value for a in AgeClass)),
    Attr("Amount", "nonneg_decimal", required=True),
    Attr("MinAge", "pos_int", high=MAX_BRACKET_AGE),
    Attr("MaxAge", "pos_int", high=MAX_BRACKET_AGE),
)


@dataclass(frozen=True)
class RateStaticMeta:
    unit_length: int
    scheme: BaseAmountScheme


@dataclass(frozen=True)
class AdditionalAmount:
    age_class: AgeClass
    amount: float
    min_age: Optional[int] = None
    max_age: Optional[int] = None

    def matches_child(self, age: int) -> bool:
        """
        Child brackets are half-open: min_age <= age < max_age.
        """
        if self.age_class is not AgeClass.CHILD:
            return False
        if self.min_age is not None and age < self.min_age:
            return False
        if self.max_age is not None and age >= self.max_age:
            return False
        return True


@dataclass(frozen=True)
class RateInterval:
    room_type: str
    start: str
    end: str
    night_count: int
    scheme: BaseAmountScheme
    base_amounts: Mapping[int, float]
    additional: Tuple[AdditionalAmount, ...] = ()

    @property
    def adult_amount(self) -> Optional[AdditionalAmount]:
        for item in self.additional:
            if item.age_class is AgeClass.ADULT:
                return item
        return None

    def child_amount(self, age: int) -> Optional[AdditionalAmount]:
        for item in self.additional:
            if item.matches_child(age):
                return item
        return None


@dataclass(frozen=True)
class RateModel:
    meta: RateStaticMeta
    intervals: Tuple[RateInterval, ...]
    room_types: Tuple[str, ...]

    def intervals_for(self, room_type: str) -> Tuple[RateInterval, ...]:
        return tuple(r for r in self.intervals if r.room_type == room_type)


############################################################
#   constructors
############################################################

def build_static_meta(rate_node) -> RateStaticMeta:
    where = f'{TAG} invalid "static" Rate'
    values = read_attrs(rate_node, STATIC_RATE_ATTRS, where)
    unit_type, unit_length = values["RateTimeUnit"], values["UnitMultiplier"]
    if (unit_type is None) != (unit_length is None):
        raise SchemaError(f"{where}: attributes RateTimeUnit and UnitMultiplier: none or both must be given")

    bases = one_child(rate_node, "BaseByGuestAmts", where)
    base = one_child(bases, "BaseByGuestAmt", where)
    scheme = BaseAmountScheme(read_attrs(base, STATIC_BASE_ATTRS, f"{where}: BaseByGuestAmt")["Type"])

    return RateStaticMeta(unit_length=unit_length or 1, scheme=scheme)


def _build_additional_amounts(rate_node, where: str) -> Tuple[AdditionalAmount, ...]:
    container = optional_child(rate_node, "AdditionalGuestAmounts", where)
    if container is None:
        return ()

    items = []
    adult_seen = False
    for node in container.children_named("AdditionalGuestAmount"):
        require_attrs(node, where)
        values = read_attrs(node, ADDITIONAL_AMOUNT_ATTRS, f"{where}: AdditionalGuestAmount")
        age_class = AgeClass(values["AgeQualifyingCode"])
        min_age, max_age = values["MinAge"], values["MaxAge"]

        if age_class is AgeClass.ADULT:
            if adult_seen:
                raise SchemaError(f'{where}: there can not be more than one AdditionalGuestAmount with AgeQualifyingCode = "10"')
            if min_age is not None or max_age is not None:
                raise SchemaError(f'{where}: an AdditionalGuestAmount has AgeQualifyingCode = "10" with age brackets')
            adult_seen = True
        elif min_age is None and max_age is None:
            raise SchemaError(f'{where}: an AdditionalGuestAmount has AgeQualifyingCode = "8" with no age brackets')
        if min_age is not None and max_age is not None and min_age >= max_age:
            raise SchemaError(f"{where}: an AdditionalGuestAmount has MinAge >= MaxAge")

        items.append(AdditionalAmount(age_class, values["Amount"], min_age, max_age))

    # each age may match at most one child bracket
    for age in range(MAX_BRACKET_AGE + 1):
        matching = [item for item in items if item.matches_child(age)]
        if len(matching) > 1:
            raise SchemaError(
                f'{where}: more than one AdditionalGuestAmount with AgeQualifyingCode = "8" match an age of {age}'
            )

    if items and not adult_seen:
        raise SchemaError(
            f'{where}: when AdditionalGuestAmount elements are present, one with AgeQualifyingCode = "10" must be present'
        )
    return tuple(items)


def build_rate_interval(rate_node, meta: RateStaticMeta) -> RateInterval:
    where = f"{TAG} invalid Rate"
    require_attrs(rate_node, where)
    room_type = read_attrs(rate_node, (Attr("InvTypeCode", "nonempty", required=True),), where)["InvTypeCode"]
    start, end = read_period(rate_node, where)
    where = f"{where} ({room_type}, {start} .. {end})"

    bases = one_child(rate_node, "BaseByGuestAmts", where)
    base_amounts = {}
    for node in some_children(bases, "BaseByGuestAmt", where):
        require_attrs(node, where)
        values = read_attrs(node, BASE_AMOUNT_ATTRS, f"{where}: BaseByGuestAmt")
        guests = values["NumberOfGuests"]
        if guests in base_amounts:
            raise SchemaError(f"{where}: more than one BaseByGuestAmt has NumberOfGuests = {guests}")
        amount = values["AmountAfterTax"]
        if meta.scheme is BaseAmountScheme.PER_GUEST:
            amount = amount * guests
        base_amounts[guests] = amount

    return RateInterval(
        room_type=room_type,
        start=start,
        end=end,
        night_count=meta.unit_length,
        scheme=meta.scheme,
        base_amounts=MappingProxyType(base_amounts),
        additional=_build_additional_amounts(rate_node, where),
    )


def interpret_rates(plan_node) -> RateModel:
    """
    Validate the Rates section of a RatePlan element and return its RateModel.
    """
    where = f"{TAG} invalid RatePlan"
    rates = one_child(plan_node, "Rates", where)
    rate_nodes = some_children(rates, "Rate", where)

    meta = build_static_meta(rate_nodes[0])

    intervals = [build_rate_interval(node, meta) for node in rate_nodes[1:]]
    room_types = []
    for interval in intervals:
        if interval.room_type not in room_types:
            room_types.append(interval.room_type)

    for code in room_types:
        check_no_overlap(
            [r for r in intervals if r.room_type == code],
            f'{TAG} invalid Rate for InvTypeCode "{code}"',
        )

    logger.debug("%s %d dated rate(s) for %d room type(s)", TAG, len(intervals), len(room_types))
    return RateModel(meta=meta, intervals=tuple(intervals), room_types=tuple(room_types))


def describe_rates(model: RateModel) -> list:
    lines = [
        f"    +-- static Rate data: UnitMultiplier = {model.meta.unit_length}, Type = {model.meta.scheme.value}"
    ]
    for code in model.room_types:
        lines.append(f'    +-- dated Rate data for InvTypeCode = "{code}":')
        intervals = model.intervals_for(code)
        for k, rate in enumerate(intervals, start=1):
            lines.append(f"        +-- Rate {k}/{len(intervals)}:")
            lines.append(f"            | start/end:      {rate.start} .. {rate.end}")
            lines.append(f"            | nights:         {rate.night_count}")
            for guests, amount in rate.base_amounts.items():
                lines.append(f"            | BaseByGuestAmt: {guests} pax -> {amount_text(amount)} EUR")
            for item in rate.additional:
                if item.age_class is AgeClass.ADULT:
                    lines.append(f"            | AdditionalGuestAmount: adult -> {amount_text(item.amount)} EUR")
                else:
                    lines.append(
                        f"            | AdditionalGuestAmount: child, {item.min_age} <= age < {item.max_age} -> {amount_text(item.amount)} EUR"
                    )
        lines.append("        +-- no overlap detected")
    return lines


register_interpreter("rates", interpret_rates, describe_rates)

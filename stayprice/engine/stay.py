"""
stay.py

The stay parameters of one pricing request and the caller supplied
inventory occupancy table, validated up front.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from stayprice.errors import InputError
from stayprice.utilities import dates
from stayprice.utilities.grammar_handling import parse_literal

DEFAULT_PROTOCOL_VERSION = "2017-10"
PROTOCOL_VERSIONS = ("2017-10", "2018-10", "2020-10")

_GUEST_COUNT = re.compile(r"^\d{1,3}$")
_NON_NEGATIVE_INT = re.compile(r"^\d+$")


@dataclass(frozen=True)
class InventoryOccupancy:
    code: str
    min_occupancy: int
    std_occupancy: int
    max_occupancy: int
    max_child_occupancy: Optional[int] = None

    def full_payers_needed(self) -> int:
        """
        Minimum number of guests paying the full (adult) rate.
        """
        if self.max_child_occupancy is None:
            return self.std_occupancy
        return max(self.min_occupancy, min(self.max_occupancy - self.max_child_occupancy, self.std_occupancy))


@dataclass(frozen=True)
class StayRequest:
    arrival: str
    departure: str
    num_adults: int
    children_ages: Tuple[int, ...]
    booking_date: str
    occupancy: Tuple[InventoryOccupancy, ...] = ()
    # accepted and echoed, no computation depends on it yet
    protocol_version: str = DEFAULT_PROTOCOL_VERSION

    @property
    def nights(self) -> int:
        return dates.days_between(self.arrival, self.departure)

    @property
    def guest_count(self) -> int:
        return self.num_adults + len(self.children_ages)

    def occupancy_for(self, code: str) -> Optional[InventoryOccupancy]:
        for item in self.occupancy:
            if item.code == code:
                return item
        return None


def _positive(value, what: str) -> int:
    text = str(value)
    if not _NON_NEGATIVE_INT.match(text) or int(text) <= 0:
        raise InputError(f"[build_occupancy_table] inventory occupancy: invalid {what} value ({value})")
    return int(text)


def build_inventory_occupancy(code, min_occ, std_occ, max_occ, max_child=None) -> InventoryOccupancy:
    code = "" if code is None else str(code)
    if code == "":
        raise InputError("[build_occupancy_table] inventory occupancy: invalid code")
    low = _positive(min_occ, "min")
    std = _positive(std_occ, "std")
    high = _positive(max_occ, "max")

    mch = None
    if max_child is not None and str(max_child) != "undefined":
        if not _NON_NEGATIVE_INT.match(str(max_child)):
            raise InputError(f"[build_occupancy_table] inventory occupancy: invalid max child occupancy value ({max_child})")
        mch = int(str(max_child))

    if not (low <= std <= high):
        raise InputError(f"[build_occupancy_table] inventory occupancy for {code}: values must be min <= std <= max")
    if mch is not None and mch > high:
        raise InputError(f"[build_occupancy_table] inventory occupancy for {code}: max child occupancy value cannot exceed max value")
    return InventoryOccupancy(code, low, std, high, mch)


def build_occupancy_table(rows) -> Tuple[InventoryOccupancy, ...]:
    """
    rows: iterable of (code, min, std, max, max_child) tuples; max_child may be
    None or "undefined". Codes must be unique.
    """
    table = []
    seen = set()
    for row in rows:
        if isinstance(row, InventoryOccupancy):
            item = row
        else:
            row = tuple(row)
            if len(row) == 4:
                row = row + (None,)
            if len(row) != 5:
                raise InputError(f"[build_occupancy_table] inventory occupancy: five values expected per row ({row})")
            item = build_inventory_occupancy(*row)
        if item.code in seen:
            raise InputError(f"[build_occupancy_table] inventory occupancy: values for code {item.code} are not unique")
        seen.add(item.code)
        table.append(item)
    return tuple(table)


def parse_occupancy_spec(text: str) -> tuple:
    """
    Parse the compact form CODE:MIN:STD:MAX[:MAXCHILD] into a 5-tuple row.
    """
    row = parse_literal(text, "occupancy")
    if row is None:
        raise InputError(f"[parse_occupancy_spec] invalid occupancy spec ({text!r}), expected CODE:MIN:STD:MAX[:MAXCHILD]")
    return row


def build_stay_request(arrival, departure, num_adults, children_ages=(), booking_date=None,
                       occupancy=(), protocol_version=None) -> StayRequest:
    """
    Validate raw stay parameters (strings or ints, as they come from the command line)
    and return a StayRequest. 'occupancy' is a list of rows for build_occupancy_table().
    """
    if not dates.is_valid_date(arrival):
        raise InputError(f"[build_stay_request] arrival: invalid date ({arrival})")
    if not dates.is_valid_date(departure):
        raise InputError(f"[build_stay_request] departure: invalid date ({departure})")
    if dates.days_between(arrival, departure) <= 0:
        raise InputError("[build_stay_request] arrival, departure: departure must be after arrival")

    if not _GUEST_COUNT.match(str(num_adults)):
        raise InputError(f"[build_stay_request] num_adults: invalid value ({num_adults})")
    adults = int(str(num_adults))

    ages = []
    for i, age in enumerate(children_ages or ()):
        if not _GUEST_COUNT.match(str(age)):
            raise InputError(f"[build_stay_request] children_ages[{i}]: invalid value ({age})")
        ages.append(int(str(age)))
    if adults + len(ages) == 0:
        raise InputError("[build_stay_request] num_adults, children_ages: need at least one occupant")

    if booking_date is None:
        booking_date = dates.today()
    if not dates.is_valid_date(booking_date):
        raise InputError(f"[build_stay_request] booking_date: invalid date ({booking_date})")

    if protocol_version is None:
        protocol_version = DEFAULT_PROTOCOL_VERSION
    if protocol_version not in PROTOCOL_VERSIONS:
        raise InputError(
            f"[build_stay_request] protocol_version: unsupported value ({protocol_version}), "
            f"expected one of {', '.join(PROTOCOL_VERSIONS)}"
        )

    return StayRequest(
        arrival=arrival,
        departure=departure,
        num_adults=adults,
        children_ages=tuple(ages),
        booking_date=booking_date,
        occupancy=build_occupancy_table(occupancy),
        protocol_version=protocol_version,
    )

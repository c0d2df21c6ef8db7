"""
constraints.py

Declarative attribute tables and the single validator that evaluates them.

Each interpreter describes the attributes it reads as a tuple of Attr specs
(name -> kind, required, allowed values, bounds); read_attrs() checks and
converts them in one place. The shapes the interpreters share (Start/End
periods, weekday masks, lengths of stay, overlap checks) live here too.
"""

import re

from stayprice._types import ALL_DAYS, WEEKDAY_ATTRS, AtomicRangeInt
from stayprice.errors import SchemaError
from stayprice.utilities import dates
from stayprice.utilities.grammar_handling import parse_literal

_NON_NEGATIVE_INT = re.compile(r"^\d+$")
_NON_NEGATIVE_DECIMAL = re.compile(r"^\d+(\.\d+)?$")
_TRUE = re.compile(r"^(1|true)$", re.IGNORECASE)
_FALSE = re.compile(r"^(0|false)$", re.IGNORECASE)


class Attr:
    """
    One attribute constraint.

    kind is one of:
      str, nonempty, date, nonneg_int, pos_int, nonneg_decimal, bool, duration, absent
    'choices' restricts the raw string value, 'low'/'high' bound integer kinds.
    """

    KINDS = ("str", "nonempty", "date", "nonneg_int", "pos_int", "nonneg_decimal", "bool", "duration", "absent")

    def __init__(self, name, kind="str", required=False, choices=None, low=None, high=None, default=None):
        if kind not in self.KINDS:
            raise ValueError(f"[Attr] unknown kind '{kind}' for attribute {name}")
        self.name = name
        self.kind = kind
        self.required = required
        self.choices = choices
        self.low = low
        self.high = high
        self.default = default


def _convert(spec: Attr, raw, where: str):
    name = spec.name
    if spec.kind == "absent":
        raise SchemaError(f"{where}: must not have a {name} attribute")
    if spec.choices is not None and raw not in spec.choices:
        allowed = ", ".join(f'"{c}"' for c in spec.choices)
        raise SchemaError(f"{where}: invalid {name} attribute ({raw!r}), expected one of {allowed}")

    if spec.kind == "str":
        return raw
    if spec.kind == "nonempty":
        if raw == "":
            raise SchemaError(f"{where}: {name} attribute must not be empty")
        return raw
    if spec.kind == "date":
        if not dates.is_valid_date(raw):
            raise SchemaError(f"{where}: invalid {name} attribute ({raw!r})")
        return raw
    if spec.kind == "bool":
        if _TRUE.match(raw):
            return True
        if _FALSE.match(raw):
            return False
        raise SchemaError(f"{where}: invalid boolean value for {name} ({raw!r})")
    if spec.kind == "nonneg_decimal":
        if not _NON_NEGATIVE_DECIMAL.match(raw):
            raise SchemaError(f"{where}: invalid {name} attribute ({raw!r})")
        return float(raw)

    if spec.kind == "duration":
        value = parse_literal(raw, "duration")
        if value is None:
            raise SchemaError(f"{where}: invalid {name} attribute ({raw!r}), expected P<n>D")
    else:
        if not _NON_NEGATIVE_INT.match(raw):
            raise SchemaError(f"{where}: invalid {name} attribute ({raw!r})")
        value = int(raw)
        if spec.kind == "pos_int" and value <= 0:
            raise SchemaError(f"{where}: {name} attribute must be a positive integer ({raw!r})")

    if spec.low is not None or spec.high is not None:
        low = spec.low if spec.low is not None else value
        high = spec.high if spec.high is not None else value
        AtomicRangeInt(value, low, high, label=f"{where}: {name}")
    return value


def read_attrs(node, table, where: str) -> dict:
    """
    Evaluate an attribute table against 'node' and return name -> converted value
    (the Attr default, usually None, for absent optional attributes).
    """
    values = {}
    for spec in table:
        raw = node.get(spec.name)
        if raw is None:
            if spec.required:
                raise SchemaError(f"{where}: missing {spec.name} attribute")
            values[spec.name] = spec.default
            continue
        values[spec.name] = _convert(spec, raw, where)
    return values


def require_attrs(node, where: str):
    """
    Elements that carry their data in attributes must have at least one.
    """
    if not node.attrs:
        raise SchemaError(f"{where}: element {node.tag} has no attributes")


############################################################
#   element cardinality
############################################################

def one_child(node, tag: str, where: str):
    found = node.children_named(tag)
    if len(found) != 1:
        raise SchemaError(f"{where}: need exactly one {tag} element (found {len(found)})")
    return found[0]


def optional_child(node, tag: str, where: str):
    found = node.children_named(tag)
    if len(found) > 1:
        raise SchemaError(f"{where}: more than one {tag} element")
    return found[0] if found else None


def some_children(node, tag: str, where: str, minimum: int = 1) -> list:
    found = node.children_named(tag)
    if len(found) < minimum:
        raise SchemaError(f"{where}: need at least {minimum} {tag} element(s)")
    return found


def forbid_child(node, tag: str, where: str):
    if node.has_child(tag):
        raise SchemaError(f"{where}: must not contain a {tag} element")


############################################################
#   shared shapes
############################################################

PERIOD_ATTRS = (
    Attr("Start", "date", required=True),
    Attr("End", "date", required=True),
)


def read_period(node, where: str):
    """
    Start/End (inclusive), Start <= End.
    """
    values = read_attrs(node, PERIOD_ATTRS, where)
    start, end = values["Start"], values["End"]
    if dates.days_between(start, end) < 0:
        raise SchemaError(f"{where}: Start > End ({start} .. {end})")
    return start, end


def _read_weekdays(node, where: str):
    mask = []
    for day in WEEKDAY_ATTRS:
        raw = node.get(day)
        # missing or empty leaves the day allowed
        if not raw:
            mask.append(True)
            continue
        mask.append(_convert(Attr(day, "bool"), raw, where))
    return tuple(mask)


def read_weekday_masks(node, where: str):
    """
    DOW_Restrictions -> (arrival mask, departure mask), Sunday first.
    Missing elements, missing or empty attributes allow the day.
    """
    arrival, departure = ALL_DAYS, ALL_DAYS
    dows = optional_child(node, "DOW_Restrictions", where)
    if dows is None:
        return arrival, departure
    arr_node = optional_child(dows, "ArrivalDaysOfWeek", where)
    if arr_node is not None:
        arrival = _read_weekdays(arr_node, f"{where}: ArrivalDaysOfWeek")
    dep_node = optional_child(dows, "DepartureDaysOfWeek", where)
    if dep_node is not None:
        departure = _read_weekdays(dep_node, f"{where}: DepartureDaysOfWeek")
    return arrival, departure


LENGTH_OF_STAY_ATTRS = (
    Attr("Time", "nonneg_int", required=True),
    Attr("TimeUnit", choices=("Day",), required=True),
    Attr("MinMaxMessageType", required=True),
)


def read_lengths_of_stay(node, where: str, allowed_types) -> dict:
    """
    LengthsOfStay -> {MinMaxMessageType: nights}; each type at most once.
    """
    found = {}
    container = optional_child(node, "LengthsOfStay", where)
    if container is None:
        return found
    for stay in container.children_named("LengthOfStay"):
        require_attrs(stay, where)
        values = read_attrs(stay, LENGTH_OF_STAY_ATTRS, f"{where}: LengthOfStay")
        kind = values["MinMaxMessageType"]
        if kind not in allowed_types:
            raise SchemaError(f"{where}: LengthOfStay has an invalid MinMaxMessageType ({kind!r})")
        if kind in found:
            raise SchemaError(f'{where}: more than one LengthOfStay of type "{kind}"')
        found[kind] = values["Time"]
    return found


def check_min_max(low, high, where: str, what: str):
    if low is not None and high is not None and low > high:
        raise SchemaError(f"{where}: inconsistent {what} values: min value > max value")


def check_no_overlap(items, where: str, key=lambda item: None):
    """
    Reject any two items sharing the same key whose [start, end] intervals overlap.
    Items are compared in document order.
    """
    for i, a in enumerate(items):
        for b in items[i + 1:]:
            if key(a) != key(b):
                continue
            if dates.intervals_overlap(a.start, a.end, b.start, b.end):
                raise SchemaError(
                    f"{where}: overlap detected ({a.start} .. {a.end} and {b.start} .. {b.end})"
                )

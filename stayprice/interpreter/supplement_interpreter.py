"""
supplement_interpreter.py

Supplement (extra charge) records of one RatePlan, grouped by InvCode.
Per code: exactly one static record (identified by its ChargeTypeCode) with
the charge policy, and one or more dated amount records.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from stayprice._types import ChargeType
from stayprice.errors import SchemaError
from stayprice.interpreter.constraints import (
    Attr, read_attrs, read_period, optional_child, require_attrs, check_no_overlap,
)
from stayprice.interpreter.registry import register_interpreter
from stayprice.trace import amount_text
from stayprice.utilities import dates

logger = logging.getLogger(__name__)

TAG = "[SupplementInterpreter]"

DEFAULT_WEEKDAY_PATTERN = "1111111"
_WEEKDAY_PATTERN = re.compile(r"^[01]{7}$")

SUPPLEMENT_ATTRS = (
    Attr("InvType", required=True, choices=("EXTRA",)),
    Attr("InvCode", "nonempty", required=True),
)

STATIC_ATTRS = (
    Attr("Start", "absent"),
    Attr("End", "absent"),
    Attr("ChargeTypeCode", required=True, choices=tuple(c.value for c in ChargeType)),
    Attr("AddToBasicRateIndicator", "bool", required=True),
    Attr("MandatoryIndicator", "bool", required=True),
)

DATED_ATTRS = (
    Attr("Amount", "nonneg_decimal", required=True),
)


@dataclass(frozen=True)
class SupplementAmount:
    start: str
    end: str
    amount: float
    room_type: Optional[str] = None

    def applies_to(self, room_type: str, date: str) -> bool:
        if self.room_type is not None and self.room_type != room_type:
            return False
        return dates.date_between(self.start, self.end, date)


@dataclass(frozen=True)
class SupplementGroup:
    code: str
    charge_type: ChargeType
    mandatory: bool
    # Monday first
    weekday_pattern: str
    amounts: Tuple[SupplementAmount, ...]

    def applies_on(self, weekday: int) -> bool:
        """
        weekday: 0 = Monday .. 6 = Sunday
        """
        return self.weekday_pattern[weekday] == "1"

    def amount_on(self, room_type: str, date: str) -> float:
        """
        Sum of every dated amount covering 'date' for 'room_type' (0 if none).
        """
        return sum(a.amount for a in self.amounts if a.applies_to(room_type, date))


@dataclass(frozen=True)
class SupplementSet:
    groups: Tuple[SupplementGroup, ...] = ()

    @property
    def mandatory(self) -> Tuple[SupplementGroup, ...]:
        return tuple(g for g in self.groups if g.mandatory)


def _read_static(node, code: str):
    where = f"{TAG} invalid static Supplement ({code})"
    values = read_attrs(node, STATIC_ATTRS, where)
    if not values["AddToBasicRateIndicator"]:
        raise SchemaError(f"{where}: AddToBasicRateIndicator must be true")

    pattern = DEFAULT_WEEKDAY_PATTERN
    pre = optional_child(node, "PrerequisiteInventory", where)
    if pre is not None:
        if pre.get("InvType") != "ALPINEBITSDOW":
            raise SchemaError(f'{where}: PrerequisiteInventory is expected to have an attribute InvType="ALPINEBITSDOW"')
        pattern = pre.get("InvCode")
        if pattern is None or not _WEEKDAY_PATTERN.match(pattern):
            raise SchemaError(
                f"{where}: PrerequisiteInventory is expected to have an attribute InvCode containing seven binary digits (0 or 1)"
            )
    return ChargeType(values["ChargeTypeCode"]), values["MandatoryIndicator"], pattern


def build_supplement_amount(node, code: str) -> SupplementAmount:
    where = f"{TAG} invalid dated Supplement ({code})"
    start, end = read_period(node, where)
    amount = read_attrs(node, DATED_ATTRS, where)["Amount"]

    room_type = None
    pre = optional_child(node, "PrerequisiteInventory", where)
    if pre is not None:
        if pre.get("InvType") != "ROOMTYPE":
            raise SchemaError(f'{where}: PrerequisiteInventory is expected to have an attribute InvType="ROOMTYPE"')
        room_type = pre.get("InvCode")
        if not room_type:
            raise SchemaError(f"{where}: PrerequisiteInventory is expected to have a non-empty attribute InvCode")
    return SupplementAmount(start=start, end=end, amount=amount, room_type=room_type)


def build_supplement_group(nodes, code: str) -> SupplementGroup:
    """
    Merge the static record and the dated records sharing InvCode 'code'.
    """
    static = [n for n in nodes if n.get("ChargeTypeCode")]
    dated = [n for n in nodes if not n.get("ChargeTypeCode")]

    if len(static) > 1:
        raise SchemaError(f'{TAG} invalid RatePlan: more than one static Supplement element with InvCode "{code}"')
    if not static:
        raise SchemaError(f'{TAG} invalid RatePlan: no static Supplement element with InvCode "{code}" found')
    charge_type, mandatory, pattern = _read_static(static[0], code)

    if not dated:
        raise SchemaError(f'{TAG} invalid RatePlan: no dated Supplement elements with InvCode "{code}" found')
    amounts = [build_supplement_amount(n, code) for n in dated]
    check_no_overlap(
        amounts, f'{TAG} invalid dated Supplement ({code})', key=lambda amount: amount.room_type
    )

    return SupplementGroup(
        code=code,
        charge_type=charge_type,
        mandatory=mandatory,
        weekday_pattern=pattern,
        amounts=tuple(amounts),
    )


def interpret_supplements(plan_node) -> SupplementSet:
    """
    Validate the (optional) Supplements section of a RatePlan element.
    """
    container = optional_child(plan_node, "Supplements", f"{TAG} invalid RatePlan")
    if container is None:
        return SupplementSet()

    by_code = {}
    for node in container.children_named("Supplement"):
        require_attrs(node, f"{TAG} invalid Supplement")
        code = read_attrs(node, SUPPLEMENT_ATTRS, f"{TAG} invalid Supplement")["InvCode"]
        by_code.setdefault(code, []).append(node)

    groups = tuple(build_supplement_group(nodes, code) for code, nodes in by_code.items())
    logger.debug("%s %d supplement code(s)", TAG, len(groups))
    return SupplementSet(groups=groups)


def describe_supplements(model: SupplementSet) -> list:
    if not model.groups:
        return ["    +-- no Supplement elements"]
    lines = []
    for group in model.groups:
        lines.append(f'    +-- Supplement data for InvCode = "{group.code}":')
        lines.append(f"        | ChargeTypeCode: {group.charge_type.value} ({group.charge_type.name.lower()})")
        lines.append(f"        | mandatory:      {group.mandatory}")
        lines.append(f"        | DOW pattern:    {group.weekday_pattern} (Monday first)")
        for amount in group.amounts:
            room = amount.room_type if amount.room_type is not None else "any room type"
            lines.append(f"        | {amount.start} .. {amount.end}: {amount_text(amount.amount)} EUR, {room}")
    return lines


register_interpreter("supplements", interpret_supplements, describe_supplements)

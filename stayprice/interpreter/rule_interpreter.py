"""
rule_interpreter.py

BookingRule records of one RatePlan: either tied to a room type
(Code + CodeContext="ROOMTYPE") or generic (no Code). Rules sharing a key
must not overlap.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from stayprice._types import ALL_DAYS, RuleStatus, WEEKDAY_ATTRS
from stayprice.errors import SchemaError
from stayprice.interpreter.constraints import (
    Attr, read_attrs, read_period, read_weekday_masks, read_lengths_of_stay,
    optional_child, require_attrs, check_min_max, check_no_overlap,
)
from stayprice.interpreter.registry import register_interpreter

logger = logging.getLogger(__name__)

TAG = "[RuleInterpreter]"

LOS_TYPES = ("SetMinLOS", "SetMaxLOS", "SetForwardMinStay", "SetForwardMaxStay")

CODE_ATTRS = (
    Attr("Code"),
    Attr("CodeContext"),
)

STATUS_ATTRS = (
    Attr("Restriction", required=True, choices=("Master",)),
    Attr("Status", required=True, choices=tuple(s.value for s in RuleStatus)),
)


@dataclass(frozen=True)
class BookingRule:
    room_type: Optional[str]
    start: str
    end: str
    min_los: Optional[int] = None
    max_los: Optional[int] = None
    min_forward: Optional[int] = None
    max_forward: Optional[int] = None
    arrival_days: Tuple[bool, ...] = ALL_DAYS
    departure_days: Tuple[bool, ...] = ALL_DAYS
    status: RuleStatus = RuleStatus.OPEN

    @property
    def is_generic(self) -> bool:
        return self.room_type is None

    @property
    def closed(self) -> bool:
        return self.status is RuleStatus.CLOSED


@dataclass(frozen=True)
class BookingRuleSet:
    rules: Tuple[BookingRule, ...] = ()
    # room type codes in first-seen order, None (generic) last if present
    keys: Tuple[Optional[str], ...] = ()

    def rules_for(self, room_type: Optional[str]) -> Tuple[BookingRule, ...]:
        return tuple(r for r in self.rules if r.room_type == room_type)

    def applicable(self, room_type: str) -> Tuple[BookingRule, ...]:
        """
        The rules that apply to 'room_type': its own rules followed by the generic ones.
        """
        return self.rules_for(room_type) + self.rules_for(None)


def _read_key(node) -> Optional[str]:
    where = f"{TAG} invalid BookingRule"
    values = read_attrs(node, CODE_ATTRS, where)
    if not values["Code"]:
        return None
    if values["CodeContext"] != "ROOMTYPE":
        raise SchemaError(f"{where}: invalid or missing CodeContext attribute")
    return values["Code"]


def build_booking_rule(node) -> BookingRule:
    where = f"{TAG} invalid BookingRule"
    require_attrs(node, where)
    room_type = _read_key(node)
    start, end = read_period(node, where)

    stays = read_lengths_of_stay(node, where, LOS_TYPES)
    min_los, max_los = stays.get("SetMinLOS"), stays.get("SetMaxLOS")
    min_forward, max_forward = stays.get("SetForwardMinStay"), stays.get("SetForwardMaxStay")
    check_min_max(min_los, max_los, where, "LengthOfStay")
    check_min_max(min_forward, max_forward, where, "forward LengthOfStay")

    arrival_days, departure_days = read_weekday_masks(node, where)

    status = RuleStatus.OPEN
    status_node = optional_child(node, "RestrictionStatus", where)
    if status_node is not None:
        require_attrs(status_node, where)
        status = RuleStatus(read_attrs(status_node, STATUS_ATTRS, f"{where}: RestrictionStatus")["Status"])

    return BookingRule(
        room_type=room_type,
        start=start,
        end=end,
        min_los=min_los,
        max_los=max_los,
        min_forward=min_forward,
        max_forward=max_forward,
        arrival_days=arrival_days,
        departure_days=departure_days,
        status=status,
    )


def interpret_booking_rules(plan_node) -> BookingRuleSet:
    """
    Validate the (optional) BookingRules section of a RatePlan element.
    """
    container = optional_child(plan_node, "BookingRules", f"{TAG} invalid RatePlan")
    if container is None:
        return BookingRuleSet()

    rules = [build_booking_rule(node) for node in container.children_named("BookingRule")]

    keys = []
    for rule in rules:
        if rule.room_type is not None and rule.room_type not in keys:
            keys.append(rule.room_type)
    if any(rule.is_generic for rule in rules):
        keys.append(None)

    check_no_overlap(rules, f"{TAG} invalid BookingRule", key=lambda rule: rule.room_type)

    logger.debug("%s %d booking rule(s), keys %s", TAG, len(rules), keys)
    return BookingRuleSet(rules=tuple(rules), keys=tuple(keys))


def _days(mask) -> str:
    return " ".join(day for day, allowed in zip(WEEKDAY_ATTRS, mask) if allowed) or "-"


def describe_booking_rules(model: BookingRuleSet) -> list:
    if not model.rules:
        return ["    +-- no BookingRule elements"]
    lines = []
    for key in model.keys:
        label = f'Code = "{key}"' if key is not None else "no Code (generic)"
        lines.append(f"    +-- BookingRule data for {label}:")
        rules = model.rules_for(key)
        for k, rule in enumerate(rules, start=1):
            lines.append(f"        +-- BookingRule {k}/{len(rules)}:")
            lines.append(f"            | start/end:      {rule.start} .. {rule.end}")
            lines.append(f"            | min/max LOS:    {rule.min_los} .. {rule.max_los}")
            if rule.min_forward is not None or rule.max_forward is not None:
                lines.append(f"            | forward stay:   {rule.min_forward} .. {rule.max_forward}")
            lines.append(f"            | arrival DOW:    {_days(rule.arrival_days)}")
            lines.append(f"            | departure DOW:  {_days(rule.departure_days)}")
            lines.append(f"            | status:         {rule.status.value}")
        lines.append("        +-- no overlap detected")
    return lines


register_interpreter("booking_rules", interpret_booking_rules, describe_booking_rules)

"""
plan_extractor.py

Locates the RatePlan elements of a rate plans document and turns each one
into a fully validated RatePlanEntity, using the registered section
interpreters. The generic tree never leaves this module.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from stayprice.errors import SchemaError
from stayprice.interpreter.constraints import Attr, read_attrs, one_child, some_children, require_attrs
from stayprice.interpreter.registry import get_interpreter

# imported for their registrations
from stayprice.interpreter import rate_interpreter, rule_interpreter, supplement_interpreter, offer_interpreter  # noqa: F401

logger = logging.getLogger(__name__)

TAG = "[PlanExtractor]"

ROOT_TAG = "OTA_HotelRatePlanNotifRQ"
ACCEPTED_CURRENCY = "EUR"
ACCEPTED_NOTIF_TYPE = "New"

# order in which the sections of a RatePlan are interpreted and narrated
SECTIONS = ("rates", "booking_rules", "supplements", "offers")

RATE_PLAN_ATTRS = (
    Attr("RatePlanNotifType", required=True, choices=(ACCEPTED_NOTIF_TYPE,)),
    Attr("CurrencyCode", required=True, choices=(ACCEPTED_CURRENCY,)),
    Attr("RatePlanCode", "nonempty", required=True),
)


@dataclass(frozen=True)
class RatePlanEntity:
    code: str
    currency: str
    notif_type: str
    rates: rate_interpreter.RateModel
    booking_rules: rule_interpreter.BookingRuleSet
    supplements: supplement_interpreter.SupplementSet
    offers: offer_interpreter.OfferDiscountModel

    @property
    def room_types(self) -> Tuple[str, ...]:
        return self.rates.room_types


def find_plans(root) -> list:
    """
    Return the RatePlan nodes of the document, enforcing the document level conventions.
    """
    where = f"{TAG} invalid rate plans message"
    if root.tag != ROOT_TAG:
        raise SchemaError(f"{where}: root element must be {ROOT_TAG} (found {root.tag})")
    plans = some_children(one_child(root, "RatePlans", where), "RatePlan", where)

    seen = set()
    for node in plans:
        require_attrs(node, f"{TAG} invalid RatePlan")
        code = read_attrs(node, RATE_PLAN_ATTRS, f"{TAG} invalid RatePlan")["RatePlanCode"]
        if code in seen:
            raise SchemaError(f"{TAG} invalid RatePlan: RatePlanCode is not unique ({code})")
        seen.add(code)
    return plans


def build_rate_plan(node) -> RatePlanEntity:
    models = {}
    for name in SECTIONS:
        interpret, _ = get_interpreter(name)
        models[name] = interpret(node)
    return RatePlanEntity(
        code=node.get("RatePlanCode"),
        currency=node.get("CurrencyCode"),
        notif_type=node.get("RatePlanNotifType"),
        **models,
    )


def describe_rate_plan(plan: RatePlanEntity) -> list:
    lines = []
    for name in SECTIONS:
        _, describe = get_interpreter(name)
        lines.extend(describe(getattr(plan, name)))
    return lines


def extract_plans(root, trace=None) -> Tuple[RatePlanEntity, ...]:
    """
    Validate every RatePlan of the document (in document order) and return
    the entities. Any violation raises SchemaError, nothing is returned partially.
    """
    nodes = find_plans(root)
    plans = []
    for i, node in enumerate(nodes, start=1):
        plan = build_rate_plan(node)
        if trace is not None:
            trace.validate(f"RatePlan {i}/{len(nodes)} (RatePlanCode = {plan.code}):")
            trace.validate_all(describe_rate_plan(plan))
        plans.append(plan)
    logger.debug("%s %d rate plan(s) extracted", TAG, len(plans))
    return tuple(plans)

"""
result.py

MatchResult: the outcome of one pricing run.

'prices' maps room type code -> total (2 decimals). When more than one
RatePlan prices the same room type, the RatePlan that comes later in the
document overrides the earlier one; every such override is kept in
'overrides' as (room_type, replaced plan, replaced price, new plan, new price).
"""

from stayprice.trace import TraceCollector


class MatchResult:
    def __init__(self, trace: TraceCollector = None):
        self.prices = {}
        self.priced_by = {}
        self.overrides = []
        self.exclusions = []
        self.trace = trace if trace is not None else TraceCollector()

    def record_price(self, plan_code: str, room_type: str, price: float):
        """
        Store a price; later calls for the same room type override earlier ones.
        """
        if room_type in self.prices:
            self.overrides.append(
                (room_type, self.priced_by[room_type], self.prices[room_type], plan_code, price)
            )
        self.prices[room_type] = price
        self.priced_by[room_type] = plan_code

    def record_exclusion(self, exclusion):
        self.exclusions.append(exclusion)

    def to_dict(self) -> dict:
        return dict(self.prices)

    def __repr__(self):
        return f"MatchResult(prices={self.prices!r}, exclusions={len(self.exclusions)})"

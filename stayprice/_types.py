"""
_types.py: Common enumerations and the bounded integer helper
used across the interpreters and the match engine.
"""

from enum import Enum

from stayprice.errors import SchemaError


class BaseAmountScheme(Enum):
    """
    BaseByGuestAmt -> Type. The code decides how a base amount is stored and looked up.
    """
    # amount is per guest: stored multiplied by NumberOfGuests, looked up by min(all guests, std)
    PER_GUEST = "7"
    # amount is already the total for NumberOfGuests, looked up by the number of base adults
    TOTAL = "25"


class AgeClass(Enum):
    ADULT = "10"
    CHILD = "8"


class RuleStatus(Enum):
    OPEN = "Open"
    CLOSED = "Close"


class ChargeType(Enum):
    PER_DAY = "1"
    PER_STAY = "12"
    PER_ROOM_PER_STAY = "18"
    PER_ROOM_PER_NIGHT = "19"
    PER_PERSON_PER_STAY = "20"
    PER_PERSON_PER_NIGHT = "21"
    PER_ITEM = "24"


# attribute names for the seven weekdays, Sunday first (matches dates.day_of_week)
WEEKDAY_ATTRS = ("Sun", "Mon", "Tue", "Weds", "Thur", "Fri", "Sat")

ALL_DAYS = (True, True, True, True, True, True, True)


class AtomicRangeInt:
    """
    Represents an integer with a min/max range check.
    The label is the attribute path used in the error message.
    """
    def __init__(self, value: int, min_value: int, max_value: int, label: str = "value"):
        self.value = value
        self.min_value = min_value
        self.max_value = max_value
        self.label = label
        self.verify_range()

    def verify_range(self):
        if not (self.min_value <= self.value <= self.max_value):
            raise SchemaError(
                f"{self.label} = {self.value} is out of range [{self.min_value}, {self.max_value}]"
            )

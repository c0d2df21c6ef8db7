"""
errors.py: The error taxonomy shared by every stayprice module.

 - DateError:    malformed or inverted date arithmetic input
 - SchemaError:  a rate plan document violates the expected structure
 - InputError:   malformed stay parameters or occupancy table
 - MatchExclusion is not an exception: it records why one (rate plan, room type)
   pair was dropped from the result, and never aborts a run.
"""

from dataclasses import dataclass


class StaypriceError(ValueError):
    """
    Base class for every hard failure. Any of these aborts the whole run,
    there is no partial result.
    """


class DateError(StaypriceError):
    pass


class SchemaError(StaypriceError):
    pass


class InputError(StaypriceError):
    pass


@dataclass(frozen=True)
class MatchExclusion:
    """
    A soft, per room type skip. Collected into the result and narrated in the trace.
    """
    plan_code: str
    room_type: str
    reason: str

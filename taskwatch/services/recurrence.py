"""
Recurrence expander.

Turns a recurrence rule plus the first start time into the start times of
the instances that follow it. Only FREQ=DAILY and FREQ=WEEKLY are
supported; INTERVAL multiplies the base period. Other parts of the rule
(BYDAY, COUNT, ...) are parsed for validity but do not shape the output.

Caps (whichever is hit first ends the series):
  - at most MAX_OCCURRENCES instances in total, the first one included
  - nothing later than MAX_RANGE_DAYS after the first start

Pure: no database, no clock. Steps are calendar-day steps in whatever
timezone first_start carries.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from dateutil.rrule import DAILY, WEEKLY, rrulestr

from taskwatch.core.errors import RecurrenceError

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 12
MAX_RANGE_DAYS = 90

_PERIOD_DAYS = {DAILY: 1, WEEKLY: 7}


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: int   # dateutil frequency constant (DAILY / WEEKLY)
    interval: int

    @property
    def step(self) -> timedelta:
        return timedelta(days=_PERIOD_DAYS[self.frequency] * self.interval)


def parse_rule(rule: str, first_start: datetime | None = None) -> RecurrenceRule:
    """Parse and validate an rrule string. Raises RecurrenceError."""
    # UNTIL may be floating or UTC; only FREQ and INTERVAL are read, so parse tz-naive
    dtstart = first_start.replace(tzinfo=None) if first_start else None
    try:
        parsed = rrulestr(rule, dtstart=dtstart, ignoretz=True)
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        raise RecurrenceError("Invalid rrule format.", rule=rule) from exc

    # rrulestr may hand back an rruleset for multi-line input
    frequency = getattr(parsed, "_freq", None)
    interval = getattr(parsed, "_interval", None)
    if frequency is None or interval is None:
        raise RecurrenceError("Invalid rrule format.", rule=rule)

    if not isinstance(interval, int) or interval <= 0:
        raise RecurrenceError("Interval must be greater than 0.", rule=rule)
    if frequency not in _PERIOD_DAYS:
        raise RecurrenceError("Unsupported recurrence frequency.", rule=rule)

    return RecurrenceRule(frequency=frequency, interval=interval)


def expand(rule: str, first_start: datetime) -> list[datetime]:
    """
    Start times of the instances after first_start, strictly increasing.

    first_start itself is not included.
    """
    parsed = parse_rule(rule, first_start)
    limit = first_start + timedelta(days=MAX_RANGE_DAYS)

    results: list[datetime] = []
    previous = first_start
    for _ in range(MAX_OCCURRENCES - 1):
        candidate = previous + parsed.step
        if candidate > limit:
            break
        results.append(candidate)
        previous = candidate

    logger.debug("Expanded %r from %s into %d instances", rule, first_start, len(results))
    return results

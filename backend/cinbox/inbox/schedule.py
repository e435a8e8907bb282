"""
Working hours (WORK_TIMES).

Each WORK_TIMES entry is a cron expression. Processing is due when the
current minute matches at least one of them. No entries means always due.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from croniter import croniter

from .errors import InboxConfigError

logger = logging.getLogger(__name__)


# Seconds to sleep before checking WORK_TIMES again
WORK_TIMES_SLEEP = 45


def validate_work_times(expressions: Iterable[str]) -> List[str]:
    """
    Raises:
        InboxConfigError: If an expression is not valid cron syntax
    """
    checked = []
    for expression in expressions:
        if not croniter.is_valid(expression):
            raise InboxConfigError(f"Invalid WORK_TIMES expression: '{expression}'")
        checked.append(expression)
    return checked


def is_work_time(expressions: Iterable[str], now: Optional[datetime] = None) -> bool:
    """True if ``now`` matches any expression (or if there are none)."""
    expressions = validate_work_times(expressions)
    if not expressions:
        return True

    now = now or datetime.now()
    for expression in expressions:
        if croniter.match(expression, now):
            logger.debug(f"WORK_TIMES expression '{expression}' is due")
            return True
    return False


def next_work_time(expressions: Iterable[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Earliest upcoming start of working hours, or None without WORK_TIMES."""
    expressions = validate_work_times(expressions)
    if not expressions:
        return None

    now = now or datetime.now()
    return min(croniter(expression, now).get_next(datetime) for expression in expressions)

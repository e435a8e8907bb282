"""
String mask placeholders.

Placeholders use the literal token form ``[@NAME@]`` and are replaced by
plain substring substitution over a fixed table.

Design rules:
- Substitution is a single pass: a replacement value that itself contains
  a token is NOT expanded again
- Result does not depend on table order
- Unknown tokens are left untouched (they may be resolved later by a task)
"""

import os
import re
from datetime import datetime
from enum import Enum
from typing import Dict, Mapping, Optional

from .errors import PlaceholderError


TOKEN_PREFIX = "[@"
TOKEN_SUFFIX = "@]"

DATETIME_FORMAT = "%Y%m%d_%H%M%S"


class Placeholder(str, Enum):
    """
    Known placeholder tokens.

    Date/time values are captured once per item. They do NOT represent the
    current time during execution, so one item gets consistent timestamps.
    """

    ITEM_ID = "[@ITEM_ID@]"
    ITEM_ID_UC = "[@ITEM_ID_UC@]"
    ITEM_ID_LC = "[@ITEM_ID_LC@]"
    BUCKET = "[@BUCKET@]"

    YEAR = "[@YEAR@]"
    MONTH = "[@MONTH@]"
    DAY = "[@DAY@]"
    HOUR = "[@HOUR@]"
    MINUTE = "[@MINUTE@]"
    SECOND = "[@SECOND@]"
    DATETIME = "[@DATETIME@]"

    DIR_HOME = "[@DIR_HOME@]"

    DIR_IN = "[@DIR_IN@]"
    FILE_IN = "[@FILE_IN@]"
    FILE_IN_NOEXT = "[@FILE_IN_NOEXT@]"
    FULL_IN_NOEXT = "[@FULL_IN_NOEXT@]"
    DIR_OUT = "[@DIR_OUT@]"
    FILE_OUT = "[@FILE_OUT@]"
    FILE_OUT_NOEXT = "[@FILE_OUT_NOEXT@]"
    FULL_OUT_NOEXT = "[@FULL_OUT_NOEXT@]"
    LOGFILE = "[@LOGFILE@]"
    OPTIONS = "[@OPTIONS@]"

    HASHTYPE = "[@HASHTYPE@]"
    HASHCODE = "[@HASHCODE@]"
    FILENAME = "[@FILENAME@]"

    DIR_TARGET = "[@DIR_TARGET@]"
    DIR_SOURCE = "[@DIR_SOURCE@]"
    DIR_BASE = "[@DIR_BASE@]"
    DIR_TEMP = "[@DIR_TEMP@]"
    DIR_TARGET_STAGE = "[@DIR_TARGET_STAGE@]"

    TASK_NAME = "[@TASK_NAME@]"
    TASK_LABEL = "[@TASK_LABEL@]"


def to_token(name: str) -> str:
    """
    Normalize a placeholder name to its token form.

    Accepts a bare name (``ITEM_ID``), a full token (``[@ITEM_ID@]``)
    or a Placeholder member.

    Raises:
        PlaceholderError: If the name is empty
    """
    if isinstance(name, Placeholder):
        return name.value
    name = (name or "").strip()
    if not name:
        raise PlaceholderError("Placeholder name must not be empty")
    if name.startswith(TOKEN_PREFIX) and name.endswith(TOKEN_SUFFIX):
        return name
    return f"{TOKEN_PREFIX}{name}{TOKEN_SUFFIX}"


def normalize_table(table: Optional[Mapping]) -> Dict[str, str]:
    """Return a copy of a placeholder mapping keyed by token, values as str."""
    if not table:
        return {}
    return {to_token(k): "" if v is None else str(v) for k, v in table.items()}


def resolve_string(masked: str, table: Mapping[str, str]) -> str:
    """
    Replace every occurrence of every table token in ``masked``.

    Args:
        masked: Text containing ``[@NAME@]`` tokens
        table: Mapping token -> replacement value

    Returns:
        Text with all known tokens replaced
    """
    if not masked or not table:
        return masked

    tokens = sorted(table.keys(), key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(t) for t in tokens))
    return pattern.sub(lambda m: table[m.group(0)], masked)


def datetime_placeholders(now: Optional[datetime] = None) -> Dict[str, str]:
    """Date/time placeholder values for ``now`` (default: current local time)."""
    now = now or datetime.now()
    return {
        Placeholder.YEAR.value: now.strftime("%Y"),
        Placeholder.MONTH.value: now.strftime("%m"),
        Placeholder.DAY.value: now.strftime("%d"),
        Placeholder.HOUR.value: now.strftime("%H"),
        Placeholder.MINUTE.value: now.strftime("%M"),
        Placeholder.SECOND.value: now.strftime("%S"),
        Placeholder.DATETIME.value: now.strftime(DATETIME_FORMAT),
    }


def environment_placeholders() -> Dict[str, str]:
    """Placeholders taken from the process environment."""
    return {Placeholder.DIR_HOME.value: os.environ.get("HOME", "")}


def file_placeholders(file_in: Optional[str] = None, file_out: Optional[str] = None) -> Dict[str, str]:
    """
    Placeholders describing an input and/or output file.

    Used for external command masks (copy commands, pre/post processors).
    """
    table: Dict[str, str] = {}
    if file_in:
        base, _ext = os.path.splitext(file_in)
        table[Placeholder.DIR_IN.value] = os.path.dirname(file_in)
        table[Placeholder.FILE_IN.value] = file_in
        table[Placeholder.FILE_IN_NOEXT.value] = os.path.basename(base)
        table[Placeholder.FULL_IN_NOEXT.value] = base
    if file_out:
        base, _ext = os.path.splitext(file_out)
        table[Placeholder.DIR_OUT.value] = os.path.dirname(file_out)
        table[Placeholder.FILE_OUT.value] = file_out
        table[Placeholder.FILE_OUT_NOEXT.value] = os.path.basename(base)
        table[Placeholder.FULL_OUT_NOEXT.value] = base
    return table

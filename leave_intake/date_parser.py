"""
Free-form leave date parsing.

Parents type dates the way they would say them: "today", "明天", "6/20",
"六月二十日", "2026-06-20". The parser reduces the input to a numeric
year/month/day string, tries a short list of layouts, and falls back to
dateutil as a last resort. The fallback is locale-unaware and accepts some
surprising strings ("june 3rd", "20"); the range checks below still apply
to whatever it returns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from zoneinfo import ZoneInfo

from dateutil import parser
from dateutil.parser import ParserError
from dateutil.relativedelta import relativedelta

TODAY_KEYWORDS = {"today", "今天"}
TOMORROW_KEYWORDS = {"tomorrow", "明天"}

DATE_LAYOUTS = ("%Y/%m/%d", "%Y-%m-%d")
COMPACT_LAYOUT = "%Y%m%d"

MAX_AHEAD = relativedelta(months=1)

_CHINESE_DIGITS = {
    "一": 1, "二": 2, "三": 3, "四": 4, "五": 5, "六": 6, "七": 7, "八": 8, "九": 9,
}
_CHINESE_NUMERAL = re.compile(r"[一二三四五六七八九十]+")
_MONTH_DAY_ONLY = re.compile(r"^\d{1,2}[/-]\d{1,2}$")
_COMPACT = re.compile(r"^\d{8}$")


class DateRejection(str, Enum):
    INVALID_FORMAT = "invalid-format"
    PAST_DATE = "past-date"
    RANGE_EXCEEDED = "range-exceeded"


REJECTION_MESSAGES = {
    DateRejection.INVALID_FORMAT: (
        "That date format was not recognised. Try 6/20, 6月20日 or 2026/6/20."
    ),
    DateRejection.PAST_DATE: "Leave cannot be requested for a past date. Pick today or later.",
    DateRejection.RANGE_EXCEEDED: "Leave can only be requested up to one month ahead.",
}


@dataclass(frozen=True)
class LeaveDateParseResult:
    valid: bool
    date: str | None = None
    display: str | None = None
    reason: DateRejection | None = None

    @property
    def message(self) -> str | None:
        return REJECTION_MESSAGES[self.reason] if self.reason else None

    @classmethod
    def accept(cls, value: date) -> LeaveDateParseResult:
        return cls(valid=True, date=value.isoformat(), display=format_display_date(value))

    @classmethod
    def reject(cls, reason: DateRejection) -> LeaveDateParseResult:
        return cls(valid=False, reason=reason)


def format_display_date(value: date) -> str:
    return f"{value:%A, %B} {value.day}, {value.year}"


def _chinese_to_int(numeral: str) -> int:
    """十 -> 10, 十五 -> 15, 二十 -> 20, 三十一 -> 31, 六 -> 6."""
    if "十" not in numeral:
        return int("".join(str(_CHINESE_DIGITS[ch]) for ch in numeral))

    tens, _, units = numeral.partition("十")
    tens_value = _CHINESE_DIGITS.get(tens, 1) if tens else 1
    units_value = _CHINESE_DIGITS.get(units, 0) if units else 0
    return tens_value * 10 + units_value


def normalize_date_text(text: str) -> str:
    """Reduce localized date text to digits and / or - separators."""
    cleaned = text.strip().lower()
    cleaned = _CHINESE_NUMERAL.sub(lambda m: str(_chinese_to_int(m.group(0))), cleaned)
    cleaned = cleaned.replace("年", "/").replace("月", "/")
    for unit in ("日", "號", "号"):
        cleaned = cleaned.replace(unit, "")
    return cleaned.strip().rstrip("/")


def _parse_candidates(text: str, today: date) -> date | None:
    if _MONTH_DAY_ONLY.match(text):
        separator = "-" if "-" in text else "/"
        text = f"{today.year}{separator}{text}"

    for layout in DATE_LAYOUTS:
        try:
            return datetime.strptime(text, layout).date()
        except ValueError:
            continue

    if _COMPACT.match(text):
        try:
            return datetime.strptime(text, COMPACT_LAYOUT).date()
        except ValueError:
            return None

    try:
        return parser.parse(text, default=datetime(today.year, today.month, 1)).date()
    except (ParserError, ValueError, OverflowError):
        return None


def reference_today(reference_now: datetime, tz: ZoneInfo) -> date:
    if reference_now.tzinfo is None:
        return reference_now.replace(tzinfo=tz).date()
    return reference_now.astimezone(tz).date()


def parse_leave_date(
    text: str, reference_now: datetime, timezone: str = "Asia/Taipei"
) -> LeaveDateParseResult:
    """
    Parse a single leave date relative to reference_now.

    Args:
        text: Raw user input
        reference_now: The current instant; naive values are read in `timezone`
        timezone: Civil timezone that defines "today"

    Returns:
        LeaveDateParseResult, never raises for bad input
    """
    today = reference_today(reference_now, ZoneInfo(timezone))
    cleaned = text.strip().lower()

    if cleaned in TODAY_KEYWORDS:
        parsed = today
    elif cleaned in TOMORROW_KEYWORDS:
        parsed = today + relativedelta(days=1)
    else:
        parsed = _parse_candidates(normalize_date_text(cleaned), today)

    if parsed is None:
        return LeaveDateParseResult.reject(DateRejection.INVALID_FORMAT)
    if parsed < today:
        return LeaveDateParseResult.reject(DateRejection.PAST_DATE)
    if parsed > today + MAX_AHEAD:
        return LeaveDateParseResult.reject(DateRejection.RANGE_EXCEEDED)

    return LeaveDateParseResult.accept(parsed)

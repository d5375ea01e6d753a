"""
Weekly recurrence rules and occurrence generation.

Everything here is pure: the same rule and window always produce the same
occurrences. Rules are expressed in local wall-clock time; UTC instants are
derived with the series timezone so DST transitions keep the local time
stable.

Occurrence index ``k`` is the number of interval steps from the anchor:
index 0 is the (weekday-aligned) anchor itself, index ``k`` starts at
``anchor + k * interval_weeks`` weeks.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from ..core.exceptions import ValidationException
from ..core.timezone_utils import get_timezone, localize

ALLOWED_INTERVAL_WEEKS = (1, 2)

# Python weekday() order, 0 = Monday
RRULE_WEEKDAYS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


@dataclass(frozen=True)
class RecurrenceRule:
    dtstart_local: datetime
    timezone: str
    duration_minutes: int
    interval_weeks: int = 1
    by_weekday: Optional[int] = None

    @property
    def weekday(self) -> int:
        if self.by_weekday is None:
            return self.dtstart_local.weekday()
        return self.by_weekday

    @property
    def step(self) -> timedelta:
        return timedelta(weeks=self.interval_weeks)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)

    def validate(self) -> None:
        if self.interval_weeks not in ALLOWED_INTERVAL_WEEKS:
            raise ValidationException(
                f"Unsupported interval of {self.interval_weeks} weeks",
                code="INVALID_RECURRENCE_INTERVAL",
                details={"allowed": list(ALLOWED_INTERVAL_WEEKS)},
            )
        if not 0 <= self.weekday <= 6:
            raise ValidationException(
                f"Weekday must be between 0 (Monday) and 6 (Sunday), got {self.weekday}",
                code="INVALID_RECURRENCE_WEEKDAY",
            )
        if self.duration_minutes <= 0:
            raise ValidationException(
                "Series duration must be positive", code="INVALID_RECURRENCE_DURATION"
            )
        if self.dtstart_local.tzinfo is not None:
            raise ValidationException(
                "Series anchor must be a local wall-clock time without offset",
                code="INVALID_RECURRENCE_ANCHOR",
            )
        get_timezone(self.timezone)


@dataclass(frozen=True)
class Occurrence:
    occurrence_index: int
    start_local: datetime  # naive wall-clock time in the rule timezone
    end_local: datetime
    start_utc: datetime
    end_utc: datetime

    @property
    def local_date(self) -> date:
        return self.start_local.date()

    @property
    def local_date_iso(self) -> str:
        return self.start_local.date().isoformat()


def anchor_start(rule: RecurrenceRule) -> datetime:
    """First local start on the rule weekday at or after ``dtstart_local``."""
    shift = (rule.weekday - rule.dtstart_local.weekday()) % 7
    return rule.dtstart_local + timedelta(days=shift)


def _build(rule: RecurrenceRule, index: int, start_local: datetime) -> Occurrence:
    tz = get_timezone(rule.timezone)
    end_local = start_local + rule.duration
    return Occurrence(
        occurrence_index=index,
        start_local=start_local,
        end_local=end_local,
        start_utc=localize(start_local, tz).astimezone(get_timezone("UTC")),
        end_utc=localize(end_local, tz).astimezone(get_timezone("UTC")),
    )


def _as_local_naive(value: datetime, rule: RecurrenceRule) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(get_timezone(rule.timezone)).replace(tzinfo=None)


def occurrence_at(rule: RecurrenceRule, index: int) -> Occurrence:
    """Occurrence for a specific index."""
    rule.validate()
    if index < 0:
        raise ValidationException("Occurrence index must be >= 0", code="INVALID_OCCURRENCE_INDEX")
    return _build(rule, index, anchor_start(rule) + rule.step * index)


def generate_occurrences(
    rule: RecurrenceRule,
    window_start_local: datetime,
    window_end_local: datetime,
    max_occurrences: Optional[int] = None,
) -> List[Occurrence]:
    """
    Occurrences starting inside ``[window_start_local, window_end_local)``.

    Window bounds are local wall-clock times; aware datetimes are converted
    into the rule timezone first. Results are ordered by index and truncated
    at ``max_occurrences``.
    """
    rule.validate()
    window_start = _as_local_naive(window_start_local, rule)
    window_end = _as_local_naive(window_end_local, rule)
    if window_end <= window_start or max_occurrences == 0:
        return []

    anchor = anchor_start(rule)
    step = rule.step
    if window_start <= anchor:
        index = 0
    else:
        index = (window_start - anchor) // step
        if anchor + step * index < window_start:
            index += 1

    occurrences: List[Occurrence] = []
    start_local = anchor + step * index
    while start_local < window_end:
        occurrences.append(_build(rule, index, start_local))
        if max_occurrences is not None and len(occurrences) >= max_occurrences:
            break
        index += 1
        start_local = anchor + step * index
    return occurrences


def build_rrule(rule: RecurrenceRule, until_local: Optional[datetime] = None) -> str:
    """RFC 5545 RRULE line for a weekly rule."""
    parts = [
        "FREQ=WEEKLY",
        f"INTERVAL={rule.interval_weeks}",
        f"BYDAY={RRULE_WEEKDAYS[rule.weekday]}",
    ]
    if until_local is not None:
        tz = get_timezone(rule.timezone)
        until_utc = localize(until_local, tz).astimezone(get_timezone("UTC"))
        parts.append(f"UNTIL={until_utc.strftime('%Y%m%dT%H%M%SZ')}")
    return "RRULE:" + ";".join(parts)


def build_exdate(rule: RecurrenceRule, excluded_dates: Iterable[str]) -> Optional[str]:
    """
    RFC 5545 EXDATE line covering every excluded local date.

    Each date is combined with the anchor's wall-clock time so the values
    match the instances generated by the RRULE.
    """
    anchor_time = anchor_start(rule).time()
    stamps = []
    for iso_date in sorted(set(excluded_dates)):
        local = datetime.combine(date.fromisoformat(iso_date), anchor_time)
        stamps.append(local.strftime("%Y%m%dT%H%M%S"))
    if not stamps:
        return None
    return f"EXDATE;TZID={rule.timezone}:" + ",".join(stamps)


def build_recurrence_lines(
    rule: RecurrenceRule,
    excluded_dates: Iterable[str] = (),
    until_local: Optional[datetime] = None,
) -> List[str]:
    lines = [build_rrule(rule, until_local)]
    exdate = build_exdate(rule, excluded_dates)
    if exdate:
        lines.append(exdate)
    return lines

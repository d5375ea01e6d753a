# backend/tests/unit/domain/test_recurrence.py
"""Unit tests for weekly recurrence rules and occurrence generation."""

from datetime import datetime, timezone

import pytest

from practicebook.core.exceptions import ValidationException
from practicebook.domain.recurrence import (
    RecurrenceRule,
    anchor_start,
    build_exdate,
    build_recurrence_lines,
    build_rrule,
    generate_occurrences,
    occurrence_at,
)


def weekly(dtstart=datetime(2025, 3, 3, 10, 0), **overrides) -> RecurrenceRule:
    params = dict(dtstart_local=dtstart, timezone="Europe/Madrid", duration_minutes=50)
    params.update(overrides)
    return RecurrenceRule(**params)


class TestAnchorAndIndexing:
    def test_anchor_moves_forward_to_rule_weekday(self):
        # 2025-03-03 is a Monday; Wednesday is weekday 2
        rule = weekly(by_weekday=2)
        assert anchor_start(rule) == datetime(2025, 3, 5, 10, 0)

    def test_weekday_defaults_to_anchor_weekday(self):
        assert weekly().weekday == 0

    def test_occurrence_index_counts_interval_steps(self):
        occ = occurrence_at(weekly(), 3)
        assert occ.occurrence_index == 3
        assert occ.start_local == datetime(2025, 3, 24, 10, 0)
        assert occ.end_local == datetime(2025, 3, 24, 10, 50)
        assert occ.local_date_iso == "2025-03-24"

    def test_biweekly_rule_spaces_occurrences_two_weeks_apart(self):
        rule = weekly(interval_weeks=2)
        assert occurrence_at(rule, 1).start_local == datetime(2025, 3, 17, 10, 0)
        assert occurrence_at(rule, 2).start_local == datetime(2025, 3, 31, 10, 0)

    def test_negative_index_rejected(self):
        with pytest.raises(ValidationException):
            occurrence_at(weekly(), -1)


class TestTimezoneHandling:
    def test_local_time_is_stable_across_dst_change(self):
        # Europe/Madrid switches to CEST on 2025-03-30
        rule = weekly(dtstart=datetime(2025, 3, 24, 10, 0))
        before = occurrence_at(rule, 0)
        after = occurrence_at(rule, 1)

        assert before.start_local.hour == after.start_local.hour == 10
        assert before.start_utc == datetime(2025, 3, 24, 9, 0, tzinfo=timezone.utc)
        assert after.start_utc == datetime(2025, 3, 31, 8, 0, tzinfo=timezone.utc)

    def test_nonexistent_local_time_shifts_forward(self):
        # 02:30 does not exist in Madrid on 2025-03-30
        rule = weekly(dtstart=datetime(2025, 3, 23, 2, 30))
        occ = occurrence_at(rule, 1)
        assert occ.start_utc == datetime(2025, 3, 30, 1, 30, tzinfo=timezone.utc)

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            occurrence_at(weekly(timezone="Mars/Olympus"), 0)
        assert exc_info.value.code == "INVALID_TIMEZONE"


class TestGenerateOccurrences:
    def test_window_is_half_open(self):
        occurrences = generate_occurrences(
            weekly(), datetime(2025, 3, 10, 10, 0), datetime(2025, 3, 24, 10, 0)
        )
        assert [o.occurrence_index for o in occurrences] == [1, 2]

    def test_max_occurrences_truncates(self):
        occurrences = generate_occurrences(
            weekly(), datetime(2025, 3, 1), datetime(2025, 6, 1), max_occurrences=3
        )
        assert [o.occurrence_index for o in occurrences] == [0, 1, 2]

    def test_window_before_anchor_starts_at_zero(self):
        occurrences = generate_occurrences(weekly(), datetime(2025, 1, 1), datetime(2025, 3, 4))
        assert [o.occurrence_index for o in occurrences] == [0]

    def test_aware_window_bounds_are_converted_to_local(self):
        # 09:00 UTC is 10:00 in Madrid in March
        occurrences = generate_occurrences(
            weekly(),
            datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc),
            datetime(2025, 3, 10, 9, 1, tzinfo=timezone.utc),
        )
        assert [o.occurrence_index for o in occurrences] == [1]

    def test_empty_or_inverted_window_yields_nothing(self):
        rule = weekly()
        assert generate_occurrences(rule, datetime(2025, 4, 1), datetime(2025, 4, 1)) == []
        assert generate_occurrences(rule, datetime(2025, 4, 2), datetime(2025, 4, 1)) == []
        assert generate_occurrences(rule, datetime(2025, 3, 1), datetime(2025, 6, 1), max_occurrences=0) == []

    def test_generation_is_deterministic(self):
        rule = weekly(interval_weeks=2, by_weekday=4)
        first = generate_occurrences(rule, datetime(2025, 3, 1), datetime(2025, 9, 1))
        second = generate_occurrences(rule, datetime(2025, 3, 1), datetime(2025, 9, 1))
        assert first == second

    @pytest.mark.parametrize(
        "overrides",
        [
            {"interval_weeks": 3},
            {"by_weekday": 7},
            {"duration_minutes": 0},
            {"dtstart": datetime(2025, 3, 3, 10, 0, tzinfo=timezone.utc)},
        ],
    )
    def test_invalid_rules_rejected(self, overrides):
        with pytest.raises(ValidationException):
            generate_occurrences(weekly(**overrides), datetime(2025, 3, 1), datetime(2025, 4, 1))


class TestRecurrenceLines:
    def test_rrule_for_biweekly_monday(self):
        assert build_rrule(weekly(interval_weeks=2)) == "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO"

    def test_rrule_until_is_expressed_in_utc(self):
        line = build_rrule(weekly(), until_local=datetime(2025, 6, 30, 10, 0))
        assert line.endswith(";UNTIL=20250630T080000Z")

    def test_exdate_uses_anchor_time_sorted_and_deduplicated(self):
        line = build_exdate(weekly(), ["2025-03-24", "2025-03-10", "2025-03-24"])
        assert line == "EXDATE;TZID=Europe/Madrid:20250310T100000,20250324T100000"

    def test_no_exdate_line_without_exclusions(self):
        assert build_exdate(weekly(), []) is None
        assert build_recurrence_lines(weekly()) == ["RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO"]

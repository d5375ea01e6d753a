# backend/tests/services/test_series_exception_store.py
"""Exception overlay of recurring series: excluded dates and standalone overrides."""

import logging

import pytest

from practicebook.core.exceptions import NotFoundException, ValidationException
from practicebook.models.booking_series import BookingSeries
from practicebook.services.series_exception_store import SeriesExceptionStore


@pytest.fixture
def series(make_client, make_series):
    return make_series(make_client())


@pytest.fixture
def store(db):
    return SeriesExceptionStore(db)


class TestExcludedDates:
    def test_add_returns_full_sorted_list(self, store, series):
        store.add_excluded_date(series.id, "2030-03-25")
        merged = store.add_excluded_date(series.id, "2030-03-11")
        assert merged == ["2030-03-11", "2030-03-25"]

    def test_adding_same_date_twice_is_idempotent(self, store, series):
        store.add_excluded_date(series.id, "2030-03-11")
        merged = store.add_excluded_date(series.id, "2030-03-11")
        assert merged == ["2030-03-11"]
        assert store.list_excluded_dates(series.id) == ["2030-03-11"]

    def test_exclusions_are_committed(self, store, series, session_factory):
        store.add_excluded_date(series.id, "2030-03-11")

        other = session_factory()
        try:
            assert other.get(BookingSeries, series.id).excluded_dates == ["2030-03-11"]
        finally:
            other.close()

    def test_invalid_date_rejected(self, store, series):
        with pytest.raises(ValidationException) as exc_info:
            store.add_excluded_date(series.id, "11/03/2030")
        assert exc_info.value.code == "INVALID_EXCLUDED_DATE"

    def test_unknown_series(self, store):
        with pytest.raises(NotFoundException):
            store.add_excluded_date("01HF4G12ABCDEF3456789XYZZZ", "2030-03-11")

    def test_writers_on_stale_sessions_do_not_lose_dates(self, series, session_factory):
        first_session = session_factory()
        second_session = session_factory()
        try:
            first = SeriesExceptionStore(first_session)
            second = SeriesExceptionStore(second_session)
            # Both sessions hold the series before either writes
            assert first.list_excluded_dates(series.id) == []
            assert second.list_excluded_dates(series.id) == []

            first.add_excluded_date(series.id, "2030-03-11")
            merged = second.add_excluded_date(series.id, "2030-03-18")

            assert merged == ["2030-03-11", "2030-03-18"]
        finally:
            first_session.close()
            second_session.close()


class TestStandaloneOverrides:
    def test_record_and_read_back(self, store, series):
        overrides = store.record_standalone_override(series.id, 3, "evt_moved_3")
        assert overrides == {3: "evt_moved_3"}
        assert store.get_standalone_override(series.id, 3) == "evt_moved_3"
        assert store.get_standalone_override(series.id, 4) is None

    def test_overrides_for_different_indices_accumulate(self, store, series):
        store.record_standalone_override(series.id, 1, "evt_a")
        overrides = store.record_standalone_override(series.id, 4, "evt_b")
        assert overrides == {1: "evt_a", 4: "evt_b"}

    def test_replacing_an_override_is_logged(self, store, series, caplog):
        store.record_standalone_override(series.id, 2, "evt_old")
        with caplog.at_level(logging.WARNING):
            overrides = store.record_standalone_override(series.id, 2, "evt_new")
        assert overrides == {2: "evt_new"}
        assert "Replacing override evt_old" in caplog.text

    def test_negative_index_rejected(self, store, series):
        with pytest.raises(ValidationException):
            store.record_standalone_override(series.id, -1, "evt")

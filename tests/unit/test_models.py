"""Tests for stockiq_sync.core.models and stockiq_sync.prices.models."""

from datetime import date

import pytest
from pydantic import ValidationError

from stockiq_sync.core.models import (
    CatalystCacheRecord,
    CatalystEvent,
    CatalystSource,
    CatalystType,
    FilingIndexEntry,
    catalyst_id,
)
from stockiq_sync.prices.models import (
    CachedRangeRecord,
    DateRange,
    HistoricalBar,
    RangeKind,
)


def _bar(day: date, close: float = 10.0) -> HistoricalBar:
    return HistoricalBar(date=day, open=close, high=close + 1, low=close - 1, close=close)


class TestCatalystId:
    def test_without_code(self):
        assert (
            catalyst_id(CatalystSource.SEC, CatalystType.PDUFA_DATE, "acme", date(2026, 1, 15))
            == "sec-pdufa_date-ACME-2026-01-15"
        )

    def test_with_code(self):
        assert (
            catalyst_id(CatalystSource.SEC, CatalystType.EARNINGS, "ACME", date(2026, 3, 2), "2.02")
            == "sec-earnings-ACME-2026-03-02-2.02"
        )


class TestCatalystEvent:
    def test_symbol_uppercased(self, sample_sec_event):
        data = {**sample_sec_event.model_dump(), "symbol": " acme "}
        assert CatalystEvent(**data).symbol == "ACME"

    def test_frozen(self, sample_sec_event):
        with pytest.raises(ValidationError):
            sample_sec_event.title = "changed"

    def test_json_round_trip(self, sample_trial_event):
        restored = CatalystEvent.model_validate(sample_trial_event.model_dump(mode="json"))
        assert restored == sample_trial_event


class TestCatalystCacheRecord:
    def test_state_for_projects_one_source(self, sample_sec_event, sample_trial_event):
        record = CatalystCacheRecord(
            symbol="ACME",
            events=[sample_sec_event, sample_trial_event],
            sync_marks={CatalystSource.SEC: date(2026, 3, 2)},
        )
        sec = record.state_for(CatalystSource.SEC)
        assert sec.events == [sample_sec_event]
        assert sec.last_fetched_date == date(2026, 3, 2)

        trials = record.state_for(CatalystSource.CLINICAL_TRIALS)
        assert trials.events == [sample_trial_event]
        assert trials.last_fetched_date is None

    def test_with_source_keeps_other_sources(self, sample_sec_event, sample_trial_event):
        record = CatalystCacheRecord(symbol="ACME", events=[sample_trial_event])
        updated = record.with_source(CatalystSource.SEC, [sample_sec_event], date(2026, 3, 2))

        assert updated.events == [sample_sec_event, sample_trial_event]
        assert updated.mark_for(CatalystSource.SEC) == date(2026, 3, 2)
        assert record.events == [sample_trial_event]

    def test_with_source_none_mark_keeps_previous(self, sample_sec_event):
        record = CatalystCacheRecord(
            symbol="ACME", sync_marks={CatalystSource.SEC: date(2026, 1, 1)}
        )
        updated = record.with_source(CatalystSource.SEC, [sample_sec_event], None)
        assert updated.mark_for(CatalystSource.SEC) == date(2026, 1, 1)

    def test_json_round_trip(self, sample_sec_event):
        record = CatalystCacheRecord(
            symbol="ACME",
            events=[sample_sec_event],
            sync_marks={CatalystSource.SEC: date(2026, 3, 2)},
        )
        assert CatalystCacheRecord.model_validate(record.model_dump(mode="json")) == record

    def test_events_from_other_producers_validate(self):
        raw = {
            "symbol": "ACME",
            "events": [
                {
                    "id": "finnhub-ex_dividend-ACME-2026-04-01",
                    "symbol": "ACME",
                    "event_type": "ex_dividend",
                    "date": "2026-04-01",
                    "title": "Ex-Dividend",
                    "source": "finnhub",
                },
                {
                    "id": "yahoo-analyst_rating-ACME-2026-04-02",
                    "symbol": "ACME",
                    "event_type": "analyst_rating",
                    "date": "2026-04-02",
                    "title": "Upgrade",
                    "source": "yahoo",
                },
            ],
            "sync_marks": {"finnhub": "2026-04-01"},
        }
        record = CatalystCacheRecord.model_validate(raw)
        assert [e.event_type for e in record.events] == [
            CatalystType.EX_DIVIDEND,
            CatalystType.ANALYST_RATING,
        ]
        assert record.state_for(CatalystSource.SEC).events == []


class TestFilingIndexEntry:
    def test_item_codes_split(self):
        entry = FilingIndexEntry(form="8-K", filing_date=date(2026, 3, 2), item_codes="2.02, 9.01")
        assert entry.item_codes == ["2.02", "9.01"]
        assert entry.has_item("2.02")
        assert not entry.has_item("5.02")

    def test_item_codes_none(self):
        entry = FilingIndexEntry(form="10-K", filing_date=date(2026, 3, 2), item_codes=None)
        assert entry.item_codes == []

    @pytest.mark.parametrize("form, expected", [("8-K", True), ("8-K/A", True), ("10-Q", False)])
    def test_is_current_report(self, form, expected):
        assert FilingIndexEntry(form=form, filing_date=date(2026, 1, 1)).is_current_report is expected

    @pytest.mark.parametrize("form, expected", [("S-3", True), ("S-3ASR", True), ("S-1", False)])
    def test_is_shelf_registration(self, form, expected):
        entry = FilingIndexEntry(form=form, filing_date=date(2026, 1, 1))
        assert entry.is_shelf_registration is expected


class TestHistoricalBar:
    def test_high_must_be_gte_low(self):
        with pytest.raises(ValidationError, match="high"):
            HistoricalBar(date=date(2026, 1, 5), open=10, high=9, low=11, close=10)

    def test_negative_volume_rejected(self):
        with pytest.raises(ValidationError, match="volume"):
            HistoricalBar(date=date(2026, 1, 5), open=10, high=11, low=9, close=10, volume=-1)

    def test_rounded(self):
        bar = HistoricalBar(
            date=date(2026, 1, 5), open=10.12345, high=11.9876, low=9.00049, close=10.5556
        )
        r = bar.rounded()
        assert (r.open, r.high, r.low, r.close) == (10.123, 11.988, 9.0, 10.556)


class TestDateRange:
    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(start=date(2026, 1, 2), end=date(2026, 1, 1))

    def test_contains_is_inclusive(self):
        r = DateRange(start=date(2026, 1, 1), end=date(2026, 1, 3), kind=RangeKind.AFTER)
        assert r.contains(date(2026, 1, 1))
        assert r.contains(date(2026, 1, 3))
        assert not r.contains(date(2026, 1, 4))

    def test_hashable(self):
        r = DateRange(start=date(2026, 1, 1), end=date(2026, 1, 3))
        assert {r: 1}[DateRange(start=date(2026, 1, 1), end=date(2026, 1, 3))] == 1


class TestCachedRangeRecord:
    def test_from_bars_derives_bounds(self):
        bars = [_bar(date(2026, 1, 5)), _bar(date(2026, 1, 6))]
        record = CachedRangeRecord.from_bars("acme", bars, fetched_from_date=date(2026, 1, 1))
        assert record.symbol == "ACME"
        assert record.earliest_date == date(2026, 1, 5)
        assert record.latest_date == date(2026, 1, 6)
        assert record.covered_through == date(2026, 1, 6)

    def test_empty_record_uses_fetched_through(self):
        record = CachedRangeRecord.from_bars(
            "ACME", [], fetched_from_date=date(2026, 1, 1), fetched_through_date=date(2026, 1, 4)
        )
        assert record.earliest_date is None
        assert record.covered_through == date(2026, 1, 4)

    def test_bars_must_ascend(self):
        bars = [_bar(date(2026, 1, 6)), _bar(date(2026, 1, 5))]
        with pytest.raises(ValidationError, match="ascending"):
            CachedRangeRecord(
                symbol="ACME",
                bars=bars,
                earliest_date=date(2026, 1, 6),
                latest_date=date(2026, 1, 5),
                fetched_from_date=date(2026, 1, 1),
            )

    def test_fetched_from_not_after_earliest(self):
        with pytest.raises(ValidationError, match="fetched_from_date"):
            CachedRangeRecord.from_bars(
                "ACME", [_bar(date(2026, 1, 5))], fetched_from_date=date(2026, 1, 6)
            )

    def test_bounds_must_match_bars(self):
        with pytest.raises(ValidationError, match="match"):
            CachedRangeRecord(
                symbol="ACME",
                bars=[_bar(date(2026, 1, 5))],
                earliest_date=date(2026, 1, 4),
                latest_date=date(2026, 1, 5),
                fetched_from_date=date(2026, 1, 1),
            )

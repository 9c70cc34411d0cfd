"""Tests for report record collection and aggregation."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from apitest.schemas.report import ReportRecord
from apitest.services.runner.reporter import DiscardTestReporter, MemoryTestReporter

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_record(api: str, start_ms: int, duration_ms: int, error: Exception | None = None) -> ReportRecord:
    begin = BASE + timedelta(milliseconds=start_ms)
    return ReportRecord(
        method="GET",
        api=api,
        begin_time=begin,
        end_time=begin + timedelta(milliseconds=duration_ms),
        error=error,
    )


class TestReportRecord:
    def test_duration(self) -> None:
        assert make_record("a", 0, 250).duration == timedelta(milliseconds=250)

    def test_unfinished_record_has_no_duration(self) -> None:
        assert ReportRecord(api="a").duration == timedelta(0)

    def test_error_count_is_zero_or_one(self) -> None:
        assert make_record("a", 0, 1).error_count == 0
        assert make_record("a", 0, 1, error=RuntimeError("x")).error_count == 1

        record = make_record("a", 0, 1, error=RuntimeError("run"))
        record.cleanup_error = RuntimeError("cleanup")
        assert record.error_count == 1


class TestMemoryTestReporter:
    def test_get_all_records_returns_a_copy(self) -> None:
        reporter = MemoryTestReporter()
        reporter.put_record(make_record("a", 0, 1))

        records = reporter.get_all_records()
        records.clear()

        assert len(reporter.get_all_records()) == 1

    def test_aggregates_same_api(self) -> None:
        reporter = MemoryTestReporter()
        for start, duration in [(0, 100), (100, 300), (400, 200)]:
            reporter.put_record(make_record("http://svc/users", start, duration))
        reporter.put_record(make_record("http://svc/users", 600, 400, error=RuntimeError("boom")))

        [result] = reporter.export_all_report_results()

        assert result.api == "http://svc/users"
        assert result.count == 4
        assert result.average == timedelta(milliseconds=250)
        assert result.max == timedelta(milliseconds=400)
        assert result.min == timedelta(milliseconds=100)
        assert result.error == 1
        # 4 records within a one second window
        assert result.qps == 4

    def test_orders_by_descending_average(self) -> None:
        reporter = MemoryTestReporter()
        reporter.put_record(make_record("fast", 0, 10))
        reporter.put_record(make_record("slow", 0, 500))
        reporter.put_record(make_record("medium", 0, 100))

        results = reporter.export_all_report_results()

        assert [r.api for r in results] == ["slow", "medium", "fast"]

    def test_ties_are_ordered_by_api(self) -> None:
        reporter = MemoryTestReporter()
        for api in ["c", "a", "b"]:
            reporter.put_record(make_record(api, 0, 100))

        assert [r.api for r in reporter.export_all_report_results()] == ["a", "b", "c"]

    def test_zero_window_has_zero_qps(self) -> None:
        reporter = MemoryTestReporter()
        reporter.put_record(make_record("a", 0, 0))

        [result] = reporter.export_all_report_results()

        assert result.qps == 0
        assert result.average == timedelta(0)

    def test_empty_reporter(self) -> None:
        assert MemoryTestReporter().export_all_report_results() == []

    def test_concurrent_writers_lose_nothing(self) -> None:
        reporter = MemoryTestReporter()

        def submit(worker: int) -> None:
            for i in range(200):
                reporter.put_record(make_record(f"api-{worker % 4}", i, 1))
                if i % 50 == 0:
                    reporter.export_all_report_results()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(submit, range(8)))

        assert len(reporter.get_all_records()) == 1600
        assert sum(r.count for r in reporter.export_all_report_results()) == 1600


class TestDiscardTestReporter:
    def test_drops_records(self) -> None:
        reporter = DiscardTestReporter()
        reporter.put_record(make_record("a", 0, 1))
        assert reporter.get_all_records() == []
        assert reporter.export_all_report_results() == []

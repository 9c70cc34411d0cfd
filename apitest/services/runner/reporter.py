"""Report record collection and per-API aggregation."""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import timedelta

from apitest.schemas.report import ReportRecord, ReportResult


class TestReporter(ABC):
    """Receives one record per test case run."""

    __test__ = False

    @abstractmethod
    def put_record(self, record: ReportRecord) -> None:
        ...

    @abstractmethod
    def get_all_records(self) -> list[ReportRecord]:
        ...

    @abstractmethod
    def export_all_report_results(self) -> list[ReportResult]:
        ...


class DiscardTestReporter(TestReporter):
    """Reporter that drops every record."""

    def put_record(self, record: ReportRecord) -> None:
        return None

    def get_all_records(self) -> list[ReportRecord]:
        return []

    def export_all_report_results(self) -> list[ReportResult]:
        return []


class MemoryTestReporter(TestReporter):
    """
    Keeps every record in memory.

    Safe to share between threads and asyncio tasks: appends are serialized
    and readers work on a point-in-time copy of the record list.
    """

    def __init__(self):
        self._records: list[ReportRecord] = []
        self._lock = threading.Lock()

    def put_record(self, record: ReportRecord) -> None:
        with self._lock:
            self._records.append(record)

    def get_all_records(self) -> list[ReportRecord]:
        with self._lock:
            return list(self._records)

    def export_all_report_results(self) -> list[ReportResult]:
        """
        Aggregate records by API.

        Returns:
            One ReportResult per API, slowest average first; equal averages
            are ordered by API ascending
        """
        groups: dict[str, list[ReportRecord]] = defaultdict(list)
        for record in self.get_all_records():
            groups[record.api].append(record)

        results = [summarize(api, records) for api, records in groups.items()]
        results.sort(key=lambda r: (-r.average, r.api))
        return results


def summarize(api: str, records: list[ReportRecord]) -> ReportResult:
    """Compute the statistics of one API's records."""
    durations = [record.duration for record in records]
    count = len(records)
    total = sum(durations, timedelta(0))

    window_start = min(record.begin_time for record in records)
    window_end = max(record.end_time or record.begin_time for record in records)
    window = (window_end - window_start).total_seconds()

    return ReportResult(
        api=api,
        count=count,
        average=total / count,
        max=max(durations),
        min=min(durations),
        qps=int(count / window) if window > 0 else 0,
        error=sum(record.error_count for record in records),
    )

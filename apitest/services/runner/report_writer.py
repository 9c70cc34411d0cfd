"""Writers that serialize aggregated report results."""

import json
import sys
from typing import TextIO

from apitest.schemas.report import ReportResult


class JSONResultWriter:
    """Writes report results as a single JSON array; durations in seconds."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout

    def output(self, results: list[ReportResult]) -> None:
        data = []
        for result in results:
            item = result.model_dump()
            for key in ("average", "max", "min"):
                item[key] = item[key].total_seconds()
            data.append(item)
        self.stream.write(json.dumps(data))


class StdResultWriter:
    """Writes report results as a plain text table."""

    HEADER = ("API", "Average", "Max", "Min", "QPS", "Count", "Error")

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout

    def output(self, results: list[ReportResult]) -> None:
        rows = [self.HEADER] + [
            (
                r.api,
                _format_duration(r.average.total_seconds()),
                _format_duration(r.max.total_seconds()),
                _format_duration(r.min.total_seconds()),
                str(r.qps),
                str(r.count),
                str(r.error),
            )
            for r in results
        ]
        widths = [max(len(row[i]) for row in rows) for i in range(len(self.HEADER))]
        for row in rows:
            line = " | ".join(cell.ljust(width) for cell, width in zip(row, widths))
            self.stream.write(line.rstrip() + "\n")


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.2f}ms"
    return f"{seconds:.3f}s"

"""Pydantic schemas for test cases and run reports."""

from apitest.schemas.test_case import Clean, Expect, Prepare, Request, TestCase, TestSuite
from apitest.schemas.report import ReportRecord, ReportResult

__all__ = [
    "Clean",
    "Expect",
    "Prepare",
    "Request",
    "TestCase",
    "TestSuite",
    "ReportRecord",
    "ReportResult",
]

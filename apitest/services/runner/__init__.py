"""Test case runner: rendering, request building, execution, verification and reporting."""

from apitest.services.runner.engine import CaseResult, SimpleTestCaseRunner, SuiteResult
from apitest.services.runner.http_client import APIHttpClient, HTTPResponse
from apitest.services.runner.template_renderer import TemplateRenderer
from apitest.services.runner.request_builder import RequestBuilder
from apitest.services.runner.verifier import ResponseVerifier
from apitest.services.runner.reporter import DiscardTestReporter, MemoryTestReporter, TestReporter
from apitest.services.runner.report_writer import JSONResultWriter, StdResultWriter

__all__ = [
    "CaseResult",
    "SimpleTestCaseRunner",
    "SuiteResult",
    "APIHttpClient",
    "HTTPResponse",
    "TemplateRenderer",
    "RequestBuilder",
    "ResponseVerifier",
    "DiscardTestReporter",
    "MemoryTestReporter",
    "TestReporter",
    "JSONResultWriter",
    "StdResultWriter",
]

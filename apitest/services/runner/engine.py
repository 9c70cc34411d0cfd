"""Main test case execution engine."""

import asyncio
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, TextIO

import httpx

from apitest.config import Settings, get_settings
from apitest.schemas.report import ReportRecord
from apitest.schemas.test_case import TestCase, TestSuite
from apitest.services.runner.errors import (
    APITestError,
    BodyMismatchError,
    DecodeError,
    ExpressionCompileError,
    ExpressionEvalError,
    FieldMismatchError,
    FieldNotFoundError,
    HeaderMismatchError,
    StatusMismatchError,
    TransportError,
    VerificationFailedError,
)
from apitest.services.runner.http_client import APIHttpClient
from apitest.services.runner.log_writer import discard_logger, new_level_logger
from apitest.services.runner.prepare import KubernetesPreparer
from apitest.services.runner.reporter import DiscardTestReporter, TestReporter
from apitest.services.runner.request_builder import RequestBuilder
from apitest.services.runner.template_renderer import TemplateRenderer
from apitest.services.runner.verifier import ResponseVerifier

# Errors that mean the service answered but not as expected
VERIFICATION_ERRORS = (
    StatusMismatchError,
    HeaderMismatchError,
    BodyMismatchError,
    DecodeError,
    FieldNotFoundError,
    FieldMismatchError,
    ExpressionCompileError,
    ExpressionEvalError,
    VerificationFailedError,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CaseResult:
    """Outcome of one test case within a suite run."""

    def __init__(
        self,
        name: str,
        status: str,
        output: Any = None,
        error: Exception | None = None,
        started_at: datetime | None = None,
        finished_at: datetime | None = None,
    ):
        self.name = name
        self.status = status  # passed, failed, skipped, error
        self.output = output
        self.error = error
        self.started_at = started_at
        self.finished_at = finished_at

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error else None

    @property
    def duration_ms(self) -> int | None:
        if self.started_at and self.finished_at:
            return int((self.finished_at - self.started_at).total_seconds() * 1000)
        return None


class SuiteResult:
    """Result of running a list of test cases."""

    def __init__(self):
        self.results: list[CaseResult] = []
        self.started_at: datetime | None = None
        self.finished_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status == "passed")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")

    @property
    def errored(self) -> int:
        return sum(1 for r in self.results if r.status == "error")

    @property
    def all_passed(self) -> bool:
        return all(r.status == "passed" for r in self.results)

    @property
    def summary(self) -> dict:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "errored": self.errored,
            "all_passed": self.all_passed,
        }


class SimpleTestCaseRunner:
    """
    Runs declarative test cases: render, build, send, verify, record.

    Every run puts exactly one ReportRecord into the reporter, whether it
    succeeded or failed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        reporter: TestReporter | None = None,
        output: TextIO | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        preparer: KubernetesPreparer | None = None,
    ):
        """
        Initialize the runner.

        Args:
            settings: Runner settings; the process settings when omitted
            reporter: Receives one record per run; records are dropped when omitted
            output: Log sink; logging is discarded when omitted
            transport: Optional httpx transport, mainly for tests
            preparer: Prepare/clean collaborator; kubectl based when omitted
        """
        self.settings = settings or get_settings()
        self.reporter = reporter or DiscardTestReporter()
        if output is None:
            self.log = discard_logger()
        else:
            self.log = new_level_logger(self.settings.log_level, output)

        self.http_client = APIHttpClient(
            timeout=self.settings.request_timeout,
            follow_redirects=self.settings.follow_redirects,
            verify_ssl=self.settings.verify_ssl,
            max_body_size=self.settings.max_body_size,
            transport=transport,
        )
        self.renderer = TemplateRenderer()
        self.builder = RequestBuilder()
        self.verifier = ResponseVerifier()
        self.preparer = preparer or KubernetesPreparer(
            kubectl_path=self.settings.kubectl_path,
            timeout=self.settings.command_timeout,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.http_client.close()

    async def __aenter__(self) -> "SimpleTestCaseRunner":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def run_test_case(
        self,
        testcase: TestCase,
        data_context: Any = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Any:
        """
        Run a single test case.

        Args:
            testcase: Case to run; it is never mutated
            data_context: Values available to the templates
            timeout: Request deadline in seconds (settings default when omitted)
            cancel: Optional event that aborts the request when set

        Returns:
            The decoded JSON body (dict or list)

        Raises:
            APITestError: The first failure of the run. A cleanup failure
                is raised only when the run itself succeeded.
        """
        self.log.info(f"start to run: '{testcase.name}'")
        record = ReportRecord(method=testcase.request.method.upper(), api=testcase.request.api)
        error: Exception | None = None
        cleanup_error: APITestError | None = None
        output = None
        prepared = False

        try:
            await self.preparer.prepare(testcase)
            prepared = True
            output = await self._execute(testcase, data_context, record, timeout, cancel)
        except APITestError as e:
            error = e.with_case(testcase.name)
        except asyncio.CancelledError:
            error = TransportError("run was canceled").with_case(testcase.name)
            raise
        except Exception as e:
            error = e
            raise
        finally:
            record.end_time = _utcnow()
            if prepared and testcase.clean.clean_prepare:
                try:
                    await self.preparer.clean(testcase)
                except APITestError as e:
                    cleanup_error = e.with_case(testcase.name)
            record.error = error
            record.cleanup_error = cleanup_error
            self.reporter.put_record(record)

        if error is not None:
            if cleanup_error is not None:
                self.log.info(f"cleanup also failed: {cleanup_error}")
            raise error
        if cleanup_error is not None:
            raise cleanup_error
        return output

    async def _execute(
        self,
        testcase: TestCase,
        data_context: Any,
        record: ReportRecord,
        timeout: float | None,
        cancel: asyncio.Event | None,
    ) -> Any:
        request = self.renderer.render_request(testcase.request, data_context)
        record.api = request.api
        record.method = request.method.upper()

        http_request = self.builder.build(request)

        self.log.info(f"start to send request to {request.api}")
        response = await self.http_client.send(http_request, timeout=timeout, cancel=cancel)
        record.body = response.body
        self.log.debug(f"response body: {record.body}")

        expect = self.renderer.render_expect(testcase.expect, data_context)
        return self.verifier.verify(expect, response).value

    async def run_suite(
        self,
        cases: TestSuite | list[TestCase],
        data_context: Any = None,
        concurrency: int = 1,
        stop_on_failure: bool = False,
    ) -> SuiteResult:
        """
        Run several test cases, at most ``concurrency`` at a time.

        Args:
            cases: A suite or a plain list of cases
            data_context: Values available to the templates; a suite's
                base URL is added as ``api`` unless the context defines it
            concurrency: Maximum number of cases in flight
            stop_on_failure: Skip cases not yet started once one fails

        Returns:
            SuiteResult with one CaseResult per case, in input order
        """
        if isinstance(cases, TestSuite):
            if cases.api and (data_context is None or isinstance(data_context, Mapping)):
                data_context = {"api": cases.api, **(data_context or {})}
            cases = cases.items

        result = SuiteResult()
        result.started_at = _utcnow()
        semaphore = asyncio.Semaphore(max(1, concurrency))
        stopped = False

        async def run_one(testcase: TestCase) -> CaseResult:
            nonlocal stopped
            async with semaphore:
                if stopped:
                    return CaseResult(
                        name=testcase.name,
                        status="skipped",
                    )

                started_at = _utcnow()
                try:
                    output = await self.run_test_case(testcase, data_context)
                except APITestError as e:
                    if stop_on_failure:
                        stopped = True
                    return CaseResult(
                        name=testcase.name,
                        status="failed" if isinstance(e, VERIFICATION_ERRORS) else "error",
                        error=e,
                        started_at=started_at,
                        finished_at=_utcnow(),
                    )

                return CaseResult(
                    name=testcase.name,
                    status="passed",
                    output=output,
                    started_at=started_at,
                    finished_at=_utcnow(),
                )

        result.results = list(await asyncio.gather(*(run_one(case) for case in cases)))
        result.finished_at = _utcnow()
        return result


async def run_test_case(testcase: TestCase, data_context: Any = None) -> Any:
    """
    Run one test case with a throwaway runner that logs to stdout.

    Deprecated: build a SimpleTestCaseRunner instead.
    """
    async with SimpleTestCaseRunner(output=sys.stdout) as runner:
        return await runner.run_test_case(testcase, data_context)

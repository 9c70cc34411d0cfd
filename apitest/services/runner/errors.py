"""Error taxonomy for test case runs.

Every failure that can end a run derives from ``APITestError``. The runner
attaches the test case name once it is known, so ``str(err)`` always tells
which case failed and, where it applies, which field or expression.
"""

from typing import Any


class APITestError(Exception):
    """Base class for all test case failures."""

    def __init__(self, message: str, case: str | None = None):
        super().__init__(message)
        self.message = message
        self.case = case

    def with_case(self, case: str) -> "APITestError":
        if self.case is None:
            self.case = case
        return self

    def __str__(self) -> str:
        if self.case:
            return f"case: {self.case}, {self.message}"
        return self.message


class TemplateError(APITestError):
    pass


class RequestBuildError(APITestError):
    pass


class TransportError(APITestError):
    pass


class DecodeError(APITestError):
    pass


class StatusMismatchError(APITestError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"expect status {expected}, actual {actual}")
        self.expected = expected
        self.actual = actual


class HeaderMismatchError(APITestError):
    def __init__(self, key: str, expected: str, actual: str):
        super().__init__(f"header[{key}] expect {expected!r}, actual {actual!r}")
        self.key = key
        self.expected = expected
        self.actual = actual


class BodyMismatchError(APITestError):
    def __init__(self, diff: str):
        super().__init__(f"got different response body, diff: \n{diff}")
        self.diff = diff


class FieldNotFoundError(APITestError):
    def __init__(self, key: str):
        super().__init__(f"not found field: {key}")
        self.key = key


class FieldMismatchError(APITestError):
    def __init__(self, key: str, expected: Any, actual: Any):
        super().__init__(f"field[{key}] expect value: {expected!r}, actual: {actual!r}")
        self.key = key
        self.expected = expected
        self.actual = actual


class ExpressionCompileError(APITestError):
    def __init__(self, expression: str, reason: str):
        super().__init__(f"failed to compile expression {expression!r}: {reason}")
        self.expression = expression


class ExpressionEvalError(APITestError):
    def __init__(self, expression: str, reason: str):
        super().__init__(f"failed to evaluate expression {expression!r}: {reason}")
        self.expression = expression


class VerificationFailedError(APITestError):
    def __init__(self, expression: str):
        super().__init__(f"failed to verify: {expression}")
        self.expression = expression


class CommandError(APITestError):
    def __init__(self, command: list[str], returncode: int | None, stderr: str = ""):
        detail = stderr.strip()
        message = f"command {' '.join(command)!r} exited with {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class PrepareError(APITestError):
    pass


class CleanupError(APITestError):
    pass


class SuiteLoadError(APITestError):
    pass

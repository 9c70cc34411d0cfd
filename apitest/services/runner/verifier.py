"""Response verification pipeline for test case expectations."""

import difflib
import json
from dataclasses import dataclass
from typing import Any

from apitest.schemas.test_case import Expect
from apitest.services.runner.errors import (
    BodyMismatchError,
    DecodeError,
    FieldMismatchError,
    FieldNotFoundError,
    HeaderMismatchError,
    StatusMismatchError,
    VerificationFailedError,
)
from apitest.services.runner.expression import ExpressionEvaluator
from apitest.services.runner.http_client import HTTPResponse

FIELD_PATH_SEPARATOR = "/"
EXPRESSION_ROOT = "data"


@dataclass(frozen=True)
class ObjectBody:
    """Response body that decoded to a JSON object."""
    value: dict[str, Any]


@dataclass(frozen=True)
class ArrayBody:
    """Response body that decoded to a JSON array."""
    value: list[Any]


DecodedBody = ObjectBody | ArrayBody


def decode_body(body: bytes | str) -> DecodedBody:
    """
    Decode a response body into its object or array variant.

    Raises:
        DecodeError: When the body is not JSON, or is a JSON scalar
    """
    try:
        value = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"failed to decode response body as JSON: {e}") from e

    if isinstance(value, dict):
        return ObjectBody(value)
    if isinstance(value, list):
        return ArrayBody(value)
    raise DecodeError(f"cannot decode JSON {type(value).__name__} into an object or array")


def expression_environment(decoded: DecodedBody) -> dict[str, Any]:
    """Both variants are exposed to expressions under the same root name."""
    return {EXPRESSION_ROOT: decoded.value}


def lookup_field(root: Any, key: str) -> tuple[Any, bool]:
    """
    Navigate ``root`` along a slash-delimited field path.

    Every segment must resolve to a mapping entry; a non-mapping value on
    the way means the path is not found.

    Returns:
        Tuple of (value, found)
    """
    current = root
    for segment in key.split(FIELD_PATH_SEPARATOR):
        if not isinstance(current, dict) or segment not in current:
            return None, False
        current = current[segment]
    return current, True


def values_equal(expected: Any, actual: Any) -> bool:
    """Deep equality that never treats a bool as equal to a number."""
    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    if isinstance(expected, dict) and isinstance(actual, dict):
        return expected.keys() == actual.keys() and all(
            values_equal(value, actual[key]) for key, value in expected.items()
        )
    if isinstance(expected, list) and isinstance(actual, list):
        return len(expected) == len(actual) and all(
            values_equal(e, a) for e, a in zip(expected, actual)
        )
    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        return expected == actual
    return type(expected) is type(actual) and expected == actual


def scalar_text(value: Any) -> str:
    """String form of a scalar; whole floats print without a fraction."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def line_diff(expected: str, actual: str) -> str:
    return "\n".join(difflib.unified_diff(
        expected.splitlines(),
        actual.splitlines(),
        fromfile="expected",
        tofile="actual",
        lineterm="",
    ))


class ResponseVerifier:
    """
    Checks a response against an Expect, in a fixed order:

    1. status code
    2. headers (only the listed ones)
    3. exact body
    4. JSON decode
    5. field paths
    6. boolean expressions

    The first failing check raises; later checks are skipped.
    """

    def __init__(self, evaluator: ExpressionEvaluator | None = None):
        self.evaluator = evaluator or ExpressionEvaluator()

    def verify(self, expect: Expect, response: HTTPResponse) -> DecodedBody:
        """
        Run every check.

        Returns:
            The decoded body

        Raises:
            DecodeError: When the body is not a JSON object or array, even
                if the exact body check passed
        """
        self._assert_status(expect, response)
        self._assert_headers(expect, response)
        self._assert_body(expect, response)

        decoded = decode_body(response.body_bytes)
        self._assert_fields(expect, decoded)
        self._assert_expressions(expect, decoded)
        return decoded

    def _assert_status(self, expect: Expect, response: HTTPResponse) -> None:
        if expect.status_code != response.status_code:
            raise StatusMismatchError(expect.status_code, response.status_code)

    def _assert_headers(self, expect: Expect, response: HTTPResponse) -> None:
        for key, expected in expect.header.items():
            actual = response.get_header(key)
            if expected != actual:
                raise HeaderMismatchError(key, expected, actual)

    def _assert_body(self, expect: Expect, response: HTTPResponse) -> None:
        if not expect.body:
            return
        expected = expect.body.strip()
        actual = response.body
        if actual != expected:
            raise BodyMismatchError(line_diff(expected, actual))

    def _assert_fields(self, expect: Expect, decoded: DecodedBody) -> None:
        for key, expected in expect.body_fields_expect.items():
            actual, found = lookup_field(decoded.value, key)
            if not found:
                raise FieldNotFoundError(key)
            if values_equal(expected, actual):
                continue
            # JSON numbers may decode as floats; an integer expectation
            # matches anything with the same printed form.
            if isinstance(expected, int) and not isinstance(expected, bool):
                if scalar_text(expected) == scalar_text(actual):
                    continue
            raise FieldMismatchError(key, expected, actual)

    def _assert_expressions(self, expect: Expect, decoded: DecodedBody) -> None:
        environment = expression_environment(decoded)
        for expression in expect.verify:
            if not self.evaluator.evaluate(expression, environment):
                raise VerificationFailedError(expression)

"""Template rendering for test case requests and expectations."""

import base64
import json
import random
import string
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jinja2 import StrictUndefined
from jinja2 import TemplateError as JinjaTemplateError
from jinja2.sandbox import SandboxedEnvironment

from apitest.schemas.test_case import Expect, Request
from apitest.services.runner.errors import RequestBuildError, TemplateError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _date(fmt: str, value: datetime | None = None) -> str:
    return (value or _now()).strftime(fmt)


def _rand(alphabet: str, n: int) -> str:
    return "".join(random.choice(alphabet) for _ in range(int(n)))


def _b64enc(value: str) -> str:
    return base64.b64encode(str(value).encode()).decode()


def _b64dec(value: str) -> str:
    return base64.b64decode(str(value).encode()).decode()


def _trim_prefix(value: str, prefix: str) -> str:
    return value[len(prefix):] if value.startswith(prefix) else value


def _trim_suffix(value: str, suffix: str) -> str:
    return value[:-len(suffix)] if suffix and value.endswith(suffix) else value


HELPER_FUNCTIONS = {
    "now": _now,
    "date": _date,
    "uuid": lambda: str(uuid.uuid4()),
    "randAlpha": lambda n: _rand(string.ascii_letters, n),
    "randNumeric": lambda n: _rand(string.digits, n),
    "randAlphaNum": lambda n: _rand(string.ascii_letters + string.digits, n),
    "b64enc": _b64enc,
    "b64dec": _b64dec,
}

HELPER_FILTERS = {
    "b64enc": _b64enc,
    "b64dec": _b64dec,
    "toJson": lambda value: json.dumps(value),
    "trimPrefix": _trim_prefix,
    "trimSuffix": _trim_suffix,
}


class TemplateRenderer:
    """
    Renders Jinja templates against an arbitrary data context.

    Supports:
    - Plain substitution: {{ user.id }}
    - Builtin and helper filters: {{ name | upper }}, {{ token | b64enc }}
    - Helper functions: {{ uuid() }}, {{ date("%Y-%m-%d") }}

    Undefined names and missing functions are errors, never empty strings.
    """

    def __init__(self):
        self.env = SandboxedEnvironment(
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.env.globals.update(HELPER_FUNCTIONS)
        self.env.filters.update(HELPER_FILTERS)

    def render(self, template: str | None, context: Any = None, name: str = "template") -> str:
        """
        Render a single template string.

        Args:
            template: Template source
            context: Data context; mapping keys become top-level names
            name: Label used in error messages

        Returns:
            Rendered string

        Raises:
            TemplateError: On invalid syntax or failure during rendering
        """
        if not template:
            return template or ""

        try:
            compiled = self.env.from_string(template)
        except JinjaTemplateError as e:
            raise TemplateError(f"failed to parse {name} template: {e}") from e

        try:
            return compiled.render(self._variables(context))
        except Exception as e:
            raise TemplateError(f"failed to render {name} template: {e}") from e

    def render_dict(self, obj: dict[str, str] | None, context: Any, name: str) -> dict[str, str]:
        """Render every value of a string mapping; keys are kept as-is."""
        return {
            key: self.render(value, context, name=f"{name}[{key}]")
            for key, value in (obj or {}).items()
        }

    def render_request(self, request: Request, context: Any = None) -> Request:
        """
        Render a request against the data context.

        The body file, when used, is read before rendering and its trimmed
        content becomes the body template. The input request is not mutated.

        Raises:
            TemplateError: When any template fails to render
            RequestBuildError: When the body file cannot be read
        """
        api = self.render(request.api, context, name="api")

        body = request.body
        if not body and request.body_from_file:
            body = read_body_file(request.body_from_file)

        return request.model_copy(update={
            "api": api,
            "body": self.render(body, context, name="body"),
            "header": self.render_dict(request.header, context, name="header"),
            "form": self.render_dict(request.form, context, name="form"),
        })

    def render_expect(self, expect: Expect, context: Any = None) -> Expect:
        """Render the expected body and header values."""
        return expect.model_copy(update={
            "body": self.render(expect.body, context, name="expect body"),
            "header": self.render_dict(expect.header, context, name="expect header"),
        })

    @staticmethod
    def _variables(context: Any) -> dict[str, Any]:
        if context is None:
            return {"ctx": {}}
        if isinstance(context, Mapping):
            return {"ctx": context, **{str(k): v for k, v in context.items()}}
        return {"ctx": context}


def read_body_file(path: str) -> str:
    """Read a request body file, trimmed of surrounding whitespace."""
    try:
        return Path(path).read_text().strip()
    except OSError as e:
        raise RequestBuildError(f"failed to read body file {path}: {e}") from e

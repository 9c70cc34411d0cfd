"""Turns a rendered test case request into an outbound httpx request."""

import binascii
import os
import re
from urllib.parse import urlencode

import httpx

from apitest.schemas.test_case import Request
from apitest.services.runner.errors import RequestBuildError
from apitest.services.runner.template_renderer import read_body_file

MULTIPART_FORM = "multipart/form-data"
URLENCODED_FORM = "application/x-www-form-urlencoded"

# RFC 7230 token characters
METHOD_PATTERN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


class RequestBuilder:
    """
    Builds transport-ready requests.

    Body source precedence:
    1. inline body
    2. body file
    3. form fields, encoded per the declared Content-Type
    4. no body
    """

    def build(self, request: Request) -> httpx.Request:
        """
        Build the outbound request.

        Args:
            request: Request whose templates are already rendered

        Returns:
            httpx.Request ready to be sent

        Raises:
            RequestBuildError: On a bad method or URL, or an unreadable body file
        """
        method = (request.method or "GET").upper()
        if not METHOD_PATTERN.fullmatch(method):
            raise RequestBuildError(f"invalid method {request.method!r}")

        url = self._parse_url(request.api)
        headers = dict(request.header)
        content, files = self._build_body(request, headers)

        try:
            return httpx.Request(method, url, headers=headers, content=content, files=files)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise RequestBuildError(f"failed to build request for {request.api}: {e}") from e

    def _build_body(
        self,
        request: Request,
        headers: dict[str, str],
    ) -> tuple[bytes | None, list | None]:
        """Select the body source; may rewrite the Content-Type in ``headers``."""
        if request.body:
            return request.body.encode(), None

        if request.body_from_file:
            return read_body_file(request.body_from_file).encode(), None

        if request.form:
            content_type = request.content_type()
            if content_type == MULTIPART_FORM:
                boundary = binascii.hexlify(os.urandom(16)).decode()
                _set_header(headers, "Content-Type", f"{MULTIPART_FORM}; boundary={boundary}")
                # (None, value) makes httpx emit a plain form field without a filename
                return None, [(key, (None, value.encode())) for key, value in request.form.items()]
            if content_type == URLENCODED_FORM:
                return urlencode(sorted(request.form.items())).encode(), None

        return None, None

    @staticmethod
    def _parse_url(api: str) -> httpx.URL:
        try:
            url = httpx.URL(api)
        except (httpx.InvalidURL, TypeError) as e:
            raise RequestBuildError(f"invalid url {api!r}: {e}") from e

        if url.scheme not in ("http", "https") or not url.host:
            raise RequestBuildError(f"invalid url {api!r}: an absolute http(s) URL is required")
        return url


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing key that differs only by case."""
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]
    headers[name] = value

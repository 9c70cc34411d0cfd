"""Load test suites from YAML files."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from apitest.schemas.test_case import TestSuite
from apitest.services.runner.errors import SuiteLoadError


def parse_test_suite(path: str | Path) -> TestSuite:
    """
    Parse a YAML test suite file.

    Raises:
        SuiteLoadError: When the file is missing, not YAML, or not a valid suite
    """
    try:
        data = yaml.safe_load(Path(path).read_text())
    except OSError as e:
        raise SuiteLoadError(f"failed to read suite {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SuiteLoadError(f"failed to parse suite {path}: {e}") from e

    try:
        return TestSuite.model_validate(data or {})
    except ValidationError as e:
        raise SuiteLoadError(f"invalid suite {path}: {e}") from e

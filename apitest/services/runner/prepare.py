"""Prepare/clean collaborator that shells out to kubectl."""

import asyncio
import logging

from apitest.schemas.test_case import TestCase
from apitest.services.runner.errors import CleanupError, CommandError, PrepareError

logger = logging.getLogger(__name__)


async def run_command(*args: str, timeout: float | None = None) -> str:
    """
    Run a command and return its stdout.

    Raises:
        CommandError: When the command cannot start, times out, or exits non-zero
    """
    command = list(args)
    logger.info(f"Executing: {' '.join(command)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(command, None, str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise CommandError(command, None, f"timed out after {timeout} seconds") from e

    stdout_text = stdout.decode() if stdout else ""
    stderr_text = stderr.decode() if stderr else ""
    if stdout_text:
        logger.debug(f"stdout: {stdout_text[:1000]}")

    if process.returncode != 0:
        raise CommandError(command, process.returncode, stderr_text)
    return stdout_text


class KubernetesPreparer:
    """Applies a test case's manifests before the run and deletes them after."""

    def __init__(self, kubectl_path: str = "kubectl", timeout: float | None = 300.0):
        self.kubectl_path = kubectl_path
        self.timeout = timeout

    async def prepare(self, testcase: TestCase) -> None:
        """Apply manifests in declaration order; the first failure aborts."""
        for item in testcase.prepare.kubernetes:
            try:
                await run_command(self.kubectl_path, "apply", "-f", item, timeout=self.timeout)
            except CommandError as e:
                raise PrepareError(f"failed to prepare {item}: {e}") from e

    async def clean(self, testcase: TestCase) -> None:
        """Delete manifests in reverse order; stops at the first failure."""
        for item in reversed(testcase.prepare.kubernetes):
            try:
                await run_command(self.kubectl_path, "delete", "-f", item, timeout=self.timeout)
            except CommandError as e:
                raise CleanupError(f"failed to clean {item}: {e}") from e

"""Subprocess wrapper for git with cancellation and transcript capture."""
import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import List, Optional

from bundle_fetch.config import FetchConfig
from bundle_fetch.context import FetchContext
from bundle_fetch.core.errors import FetchCancelledError, GitOperationError

logger = logging.getLogger(__name__)


def decode_output(data: bytes) -> str:
    """Decode git output for messages; never fails."""
    return data.decode("utf-8", errors="replace").strip()


class GitRunner:
    """Runs git commands on behalf of one fetch.

    Every command first checks the fetch context, and while the child runs
    the context is polled every ``config.poll_interval`` seconds. A cancelled
    or expired context kills the child and raises FetchCancelledError.
    """

    def __init__(self, config: FetchConfig, ctx: FetchContext):
        self.config = config
        self.ctx = ctx
        self._env = dict(os.environ)
        self._env["GIT_TERMINAL_PROMPT"] = "0"
        self._env.update(config.env)

    def run(
        self,
        args: List[str],
        operation: str,
        timeout: float,
        cwd: Optional[Path] = None,
        input: Optional[bytes] = None,
    ) -> subprocess.CompletedProcess:
        """Run ``git <args>`` and return the completed process (bytes output).

        Raises:
            FetchCancelledError: if the context is cancelled or expires
            subprocess.TimeoutExpired: if ``timeout`` passes first
            GitOperationError: if git cannot be executed at all
        """
        self.ctx.check(operation)

        cmd = [self.config.git_executable, *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._env,
                # own process group, so helpers git spawns die with it
                start_new_session=True,
            )
        except OSError as e:
            raise GitOperationError(
                f"Cannot run {self.config.git_executable} for {operation}: {e}"
            ) from e

        expires = time.monotonic() + timeout
        pending = input
        while True:
            wait = self.config.poll_interval
            remaining = self.ctx.remaining()
            if remaining is not None:
                wait = max(0.01, min(wait, remaining))
            try:
                stdout, stderr = proc.communicate(input=pending, timeout=wait)
                break
            except subprocess.TimeoutExpired:
                # Input already handed to communicate() keeps flowing on retry.
                pending = None

            reason = self.ctx.reason()
            if reason is not None:
                self._kill(proc)
                logger.info(f"Aborted {operation}: {reason}")
                raise FetchCancelledError(operation, reason)
            if time.monotonic() >= expires:
                stdout, stderr = self._kill(proc)
                raise subprocess.TimeoutExpired(cmd, timeout, output=stdout, stderr=stderr)

        return subprocess.CompletedProcess(cmd, proc.returncode, stdout, stderr)

    @staticmethod
    def _kill(proc: subprocess.Popen):
        """Kill the child with its helpers (ssh, remote helpers) and collect its output."""
        if hasattr(os, "killpg"):
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        else:
            proc.kill()
        return proc.communicate()

"""
Process Runner: Run an external encoder with a deadline and cancellation.

Every ffmpeg/ffprobe/gifsicle call goes through ``run_process``. The child
is polled until it exits, its deadline passes or the caller's cancel event
is set. A child that is still running when we leave is killed and reaped.

Temp files:
- ``request_workspace()`` is one directory per compress() call, removed
  on exit.
- ``trial_output()`` is one output path per trial, unlinked on exit.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from ..errors import CompressionCancelled, EncodeError, EncodeTimeoutError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.2  # seconds between deadline/cancel checks


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: bytes
    stderr: str
    elapsed: float

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, limit: int = 500) -> str:
        return self.stderr[-limit:]


def run_process(
    cmd: List[str],
    timeout: float,
    cancel_event: Optional[threading.Event] = None,
    poll_interval: float = POLL_INTERVAL,
) -> ProcessResult:
    """
    Run ``cmd`` to completion.

    Raises:
        EncodeTimeoutError: The child outlived ``timeout`` and was killed
        CompressionCancelled: ``cancel_event`` was set while it ran
        EncodeError: The program could not be started
    """
    try:
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except FileNotFoundError:
        raise EncodeError(f"{cmd[0]} not found. Is it installed and on PATH?")
    except OSError as e:
        raise EncodeError(f"Could not start {cmd[0]}: {e}")

    start_time = time.monotonic()
    try:
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"{cmd[0]} cancelled by caller")
                    raise CompressionCancelled(f"{cmd[0]} cancelled")
                elapsed = time.monotonic() - start_time
                if elapsed > timeout:
                    logger.warning(f"{cmd[0]} exceeded {timeout:.0f}s, killing")
                    raise EncodeTimeoutError(
                        f"{cmd[0]} timed out after {timeout:.0f}s", timeout=timeout
                    )
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.communicate()

    elapsed = time.monotonic() - start_time
    logger.debug(f"{cmd[0]} finished in {elapsed:.1f}s (rc={proc.returncode})")

    return ProcessResult(
        returncode=proc.returncode,
        stdout=stdout or b"",
        stderr=(stderr or b"").decode("utf-8", errors="replace"),
        elapsed=elapsed,
    )


@contextmanager
def request_workspace(parent: Optional[str] = None) -> Iterator[Path]:
    """Private temp directory for one request, removed on every exit path."""
    tmpdir = tempfile.mkdtemp(prefix="mediafit_", dir=parent)
    try:
        yield Path(tmpdir)
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


@contextmanager
def trial_output(workspace: Path, suffix: str) -> Iterator[Path]:
    """Unique output path for one trial; the file is removed afterwards."""
    path = workspace / f"trial_{uuid.uuid4().hex}{suffix}"
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)

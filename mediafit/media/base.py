"""
Encoder Base: Interface every media encoder implements.

The search engine only ever calls ``encoder.encode(params) -> bytes``.
Real encoders shell out to gifsicle/ffmpeg or run Pillow in-process;
tests swap in fakes that return deterministic sizes.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config import EngineSettings
from ..engine.ladder import LadderRung
from ..engine.search import SearchPolicy
from ..errors import EncodeError
from ..models import ProbeResult
from .process import run_process, trial_output


@dataclass(frozen=True)
class EncodeParams:
    """Base for the per-media parameter sets."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EncodeContext:
    """
    Everything an encoder needs for one request.

    Built by the compressor once per request and shared by every trial.
    """

    data: bytes
    mime_type: str
    input_path: Path
    workspace: Path
    settings: EngineSettings
    timeout: float
    probe: Optional[ProbeResult] = None
    cancel_event: Optional[threading.Event] = None


@dataclass(frozen=True)
class MediaPlan:
    """Search policy plus rung ladder for one request."""

    media_type: str
    policy: SearchPolicy
    rungs: Tuple[LadderRung, ...]
    output_mime_type: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def describe(self) -> Dict[str, Any]:
        return {
            "media_type": self.media_type,
            "output_mime_type": self.output_mime_type,
            "max_attempts_per_rung": self.policy.max_attempts,
            "rungs": [r.describe() for r in self.rungs],
            **dict(self.details),
        }


class Encoder(ABC):
    """Abstract base class for all encoders."""

    media_type: str = ""

    def __init__(self, context: EncodeContext):
        self.context = context

    @abstractmethod
    def encode(self, params: EncodeParams) -> bytes:
        """
        Encode the input with ``params`` and return the output bytes.

        Raises EncodeError on failure. Must leave no files behind.
        """
        pass


class ExternalEncoder(Encoder):
    """Encoder that runs an external program writing to a trial file."""

    suffix: str = ""

    @abstractmethod
    def build_command(self, params: EncodeParams, output_path: Path) -> List[str]:
        pass

    def encode(self, params: EncodeParams) -> bytes:
        with trial_output(self.context.workspace, self.suffix) as out_path:
            cmd = self.build_command(params, out_path)
            result = run_process(cmd, timeout=self.context.timeout, cancel_event=self.context.cancel_event)

            if not result.ok:
                raise EncodeError(
                    f"{Path(cmd[0]).name} failed (rc={result.returncode}): {result.stderr_tail(300)}",
                    returncode=result.returncode,
                    stderr=result.stderr,
                    params=params.to_dict(),
                )
            if not out_path.exists() or out_path.stat().st_size == 0:
                raise EncodeError(
                    f"{Path(cmd[0]).name} produced no output",
                    returncode=result.returncode,
                    params=params.to_dict(),
                )

            return out_path.read_bytes()

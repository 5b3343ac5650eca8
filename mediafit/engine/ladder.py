"""
Ladder Fallback: Step down a second compression dimension.

When the primary knob (quality, lossy level, bitrate) cannot reach the
target, the manager moves to the next rung: fewer colors, a lower
resolution, a smaller channel layout. Each rung gets a fresh search with
its own bounds and the same target. Rungs run best-quality first and are
never revisited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from ..errors import EncodeError
from .search import SearchController, SearchOutcome, SearchPolicy
from .state import Trial

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LadderRung:
    """
    One step of the ladder.

    ``build_params`` maps the searched knob value to the full parameter set
    the encoder needs at this rung. ``details`` carries what the rung
    changes (resolution, colors, channel layout) for results and logs.
    """

    name: str
    rank: int
    low: int
    high: int
    initial: int
    build_params: Callable[[int], Any] = field(compare=False, repr=False)
    details: Mapping[str, Any] = field(default_factory=dict, compare=False)
    policy: Optional[SearchPolicy] = None

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rank": self.rank,
            "bounds": [self.low, self.high],
            "initial": self.initial,
            **dict(self.details),
        }


@dataclass(frozen=True)
class RungResult:
    rung: LadderRung
    outcome: SearchOutcome


@dataclass(frozen=True)
class LadderOutcome:
    """Search outcomes for every rung that ran, in order."""

    results: Tuple[RungResult, ...]

    @property
    def winner(self) -> Optional[RungResult]:
        """The first rung that produced a trial within target, if any."""
        for result in self.results:
            if result.outcome.best is not None:
                return result
        return None

    @property
    def closest_over(self) -> Optional[Tuple[LadderRung, Trial]]:
        """Smallest over-target trial across all rungs."""
        best: Optional[Tuple[LadderRung, Trial]] = None
        for result in self.results:
            trial = result.outcome.closest_over
            if trial is not None and (best is None or trial.size < best[1].size):
                best = (result.rung, trial)
        return best

    @property
    def trials_run(self) -> int:
        return sum(r.outcome.attempts for r in self.results)

    @property
    def rungs_tried(self) -> Tuple[str, ...]:
        return tuple(r.rung.name for r in self.results)


def validate_rungs(rungs: Sequence[LadderRung]) -> None:
    """Rungs must be non-empty with strictly decreasing rank."""
    if not rungs:
        raise ValueError("Ladder needs at least one rung")
    for prev, rung in zip(rungs, rungs[1:]):
        if rung.rank >= prev.rank:
            raise ValueError(
                f"Rung '{rung.name}' (rank {rung.rank}) does not rank below "
                f"'{prev.name}' (rank {prev.rank})"
            )


class LadderFallbackManager:
    """Runs the search once per rung until one fits the target."""

    def __init__(self, policy: SearchPolicy):
        self.policy = policy

    def run(
        self,
        rungs: Sequence[LadderRung],
        target: int,
        encode: Callable[[Any], bytes],
    ) -> LadderOutcome:
        validate_rungs(rungs)
        results = []

        for rung in rungs:
            controller = SearchController(rung.policy or self.policy)
            logger.info(
                f"Rung {rung.name}: searching [{rung.low}, {rung.high}] from {rung.initial}",
                extra={"rung": rung.name},
            )

            def encode_fn(param: int, rung: LadderRung = rung) -> bytes:
                return encode(rung.build_params(param))

            outcome = controller.run(
                encode_fn,
                target=target,
                initial=rung.initial,
                low=rung.low,
                high=rung.high,
                label=rung.name,
            )
            results.append(RungResult(rung=rung, outcome=outcome))

            if outcome.best is not None:
                break
            logger.info(f"Rung {rung.name} did not reach target", extra={"rung": rung.name})

        ladder = LadderOutcome(results=tuple(results))

        if not any(r.outcome.encoded_any for r in results):
            failures = sum(len(r.outcome.failures) for r in results)
            raise EncodeError(f"Every encode failed ({failures} attempt(s) across {len(results)} rung(s))")

        return ladder

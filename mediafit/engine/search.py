"""
Search Controller: Drives encode trials toward a byte budget.

The encoder is a black box ``encode_fn(param) -> bytes`` whose output size
moves roughly monotonically with ``param``. The controller runs a bounded
secant search over it:

1. Encode at the current parameter and record the trial.
2. Under target: keep it if it is the largest fit so far. Stop when within
   tolerance of the target, otherwise pull the bounds toward better quality.
3. Over target: pull the bounds toward tighter compression. A small
   overshoot gets a nudge instead of an extrapolation step.
4. Next parameter from a line through the last two trials, clamped to the
   bounds. A flat region gets a fixed jump; fewer than two trials bisects.
5. Stop when the bounds collapse, attempts run out, or the next parameter
   repeats one already tried.

Usage:
    controller = SearchController(SearchPolicy(max_attempts=4))
    outcome = controller.run(encode, target=9_800_000, initial=65, low=1, high=100)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from ..errors import EncodeError
from .state import SearchBounds, SearchState, Trial

logger = logging.getLogger(__name__)

EncodeFn = Callable[[int], bytes]


class StopReason(str, Enum):
    ON_TARGET = "on_target"
    ACCEPTED = "accepted_first_valid"
    BOUNDS_COLLAPSED = "bounds_collapsed"
    REDUNDANT = "redundant_param"
    MAX_ATTEMPTS = "max_attempts"
    ENCODER_FAILED = "encoder_failed"


@dataclass(frozen=True)
class SearchPolicy:
    """
    Knobs for one media type's search.

    ``inverse`` is True when a larger parameter means a smaller output
    (GIF lossy level); False when a larger parameter means a larger output
    (quality, bitrate).
    """

    max_attempts: int = 8
    epsilon: int = 1
    inverse: bool = False
    narrow_step: int = 1
    flat_size_delta: int = 1
    flat_jump: int = 15
    nudge_min: int = 1
    nudge_scale: int = 2
    tolerance: float = 0.01
    accept_first_valid: bool = False
    max_consecutive_failures: int = 2

    def toward_smaller(self, param: int, step: int) -> int:
        """Move ``param`` in the direction that shrinks the output."""
        return param + step if self.inverse else param - step

    def toward_larger(self, param: int, step: int) -> int:
        return param - step if self.inverse else param + step


@dataclass(frozen=True)
class SearchOutcome:
    """What one rung's search found."""

    best: Optional[Trial]
    closest_over: Optional[Trial]
    trials: Tuple[Trial, ...]
    failures: Tuple[int, ...]
    stop_reason: StopReason

    @property
    def best_param(self) -> Optional[int]:
        return self.best.param if self.best else None

    @property
    def best_size(self) -> Optional[int]:
        return self.best.size if self.best else None

    @property
    def best_output(self) -> Optional[bytes]:
        return self.best.output if self.best else None

    @property
    def attempts(self) -> int:
        return len(self.trials) + len(self.failures)

    @property
    def encoded_any(self) -> bool:
        return bool(self.trials)


class SearchController:
    """Runs one bounded search for a single ladder rung."""

    def __init__(self, policy: SearchPolicy):
        self.policy = policy

    def run(
        self,
        encode_fn: EncodeFn,
        target: int,
        initial: int,
        low: int,
        high: int,
        label: str = "",
    ) -> SearchOutcome:
        policy = self.policy
        bounds = SearchBounds.normalized(low, high)
        state = SearchState(bounds=bounds, current=bounds.clamp(initial))
        reason = StopReason.MAX_ATTEMPTS

        logger.debug(
            f"Search start: initial={state.current} bounds=[{bounds.low}, {bounds.high}] target={target}",
            extra={"rung": label},
        )

        while state.attempts < policy.max_attempts:
            param = state.current

            try:
                output = encode_fn(param)
            except EncodeError as e:
                state = state.with_failure(param)
                logger.warning(
                    f"Encode failed at {param}: {e}",
                    extra={"rung": label, "param": param},
                )
                if state.consecutive_failures >= policy.max_consecutive_failures:
                    reason = StopReason.ENCODER_FAILED
                    break
                next_param = state.bounds.midpoint()
            else:
                trial = Trial(param=param, size=len(output), output=output)
                state = state.with_trial(trial, target)

                if trial.fits(target):
                    if (target - trial.size) / target <= policy.tolerance:
                        self._log_trial(trial, target, "on target", label)
                        reason = StopReason.ON_TARGET
                        break
                    if policy.accept_first_valid:
                        self._log_trial(trial, target, "accepted", label)
                        reason = StopReason.ACCEPTED
                        break
                    self._log_trial(trial, target, "under, raising quality", label)
                    state = state.with_bounds(self._narrow_toward_quality(state.bounds, param))
                    next_param = self._next_param(state, target)
                else:
                    self._log_trial(trial, target, "over, compressing harder", label)
                    state = state.with_bounds(self._narrow_toward_compression(state.bounds, param))
                    over = (trial.size - target) / target
                    if over <= policy.tolerance:
                        next_param = self._nudge(state, param, over)
                    else:
                        next_param = self._next_param(state, target)

            if state.attempts >= policy.max_attempts:
                reason = StopReason.MAX_ATTEMPTS
                break
            if state.bounds.collapsed:
                reason = StopReason.BOUNDS_COLLAPSED
                break
            if state.is_redundant(next_param, policy.epsilon):
                reason = StopReason.REDUNDANT
                break

            state = state.with_current(next_param)

        outcome = SearchOutcome(
            best=state.best,
            closest_over=state.closest_over,
            trials=state.trials,
            failures=state.failed,
            stop_reason=reason,
        )
        logger.info(
            f"Search done: {reason.value} after {outcome.attempts} attempt(s), "
            f"best={outcome.best_param} ({outcome.best_size} bytes)",
            extra={"rung": label},
        )
        return outcome

    # ── Step rules ──────────────────────────────────────────────────

    def _narrow_toward_quality(self, bounds: SearchBounds, param: int) -> SearchBounds:
        step = self.policy.narrow_step
        if self.policy.inverse:
            return bounds.narrow(high=param - step)
        return bounds.narrow(low=param + step)

    def _narrow_toward_compression(self, bounds: SearchBounds, param: int) -> SearchBounds:
        step = self.policy.narrow_step
        if self.policy.inverse:
            return bounds.narrow(low=param + step)
        return bounds.narrow(high=param - step)

    def _nudge(self, state: SearchState, param: int, over: float) -> int:
        """Small step toward tighter compression for a near-miss."""
        percent_over = over * 100
        step = max(self.policy.nudge_min, math.ceil(percent_over * self.policy.nudge_scale))
        return state.bounds.clamp(self.policy.toward_smaller(param, step))

    def _next_param(self, state: SearchState, target: int) -> int:
        """Secant step through the last two trials, or bisection."""
        policy = self.policy
        if len(state.trials) < 2:
            return state.bounds.midpoint()

        prev, last = state.trials[-2], state.trials[-1]
        size_delta = last.size - prev.size
        param_delta = last.param - prev.param

        if abs(size_delta) < policy.flat_size_delta or param_delta == 0:
            if last.size > target:
                candidate = policy.toward_smaller(last.param, policy.flat_jump)
            else:
                candidate = policy.toward_larger(last.param, policy.flat_jump)
        else:
            slope = size_delta / param_delta
            candidate = round(last.param + (target - last.size) / slope)

        return state.bounds.clamp(candidate)

    @staticmethod
    def _log_trial(trial: Trial, target: int, decision: str, label: str) -> None:
        logger.info(
            f"Trial {trial.param}: {trial.size} bytes (target {target}) -> {decision}",
            extra={"rung": label, "param": trial.param, "size": trial.size},
        )

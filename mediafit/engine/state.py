"""
Search State: Immutable values threaded through the search loop.

A ``SearchState`` is never modified in place; each step of the search
returns a new one. Bounds only ever shrink within a rung.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple


@dataclass(frozen=True)
class Trial:
    """One encode-and-measure observation."""

    param: int
    size: int
    output: bytes = field(repr=False, compare=False)

    def fits(self, target: int) -> bool:
        return self.size <= target


@dataclass(frozen=True)
class SearchBounds:
    """Inclusive range for the active parameter."""

    low: int
    high: int

    @classmethod
    def normalized(cls, low: int, high: int) -> "SearchBounds":
        """Build bounds, collapsing an inverted range onto ``low``."""
        return cls(low, max(low, high))

    @property
    def collapsed(self) -> bool:
        return self.high <= self.low

    def clamp(self, value: int) -> int:
        return max(self.low, min(self.high, value))

    def midpoint(self) -> int:
        return (self.low + self.high) // 2

    def narrow(self, low: Optional[int] = None, high: Optional[int] = None) -> "SearchBounds":
        """Return bounds no wider than these, with the given edge(s) pulled in."""
        new_low = self.low if low is None else max(self.low, low)
        new_high = self.high if high is None else min(self.high, high)
        return SearchBounds(new_low, new_high)


@dataclass(frozen=True)
class SearchState:
    """Everything the search knows after a sequence of trials."""

    bounds: SearchBounds
    current: int
    trials: Tuple[Trial, ...] = ()
    failed: Tuple[int, ...] = ()
    best: Optional[Trial] = None
    closest_over: Optional[Trial] = None
    consecutive_failures: int = 0

    @property
    def attempts(self) -> int:
        return len(self.trials) + len(self.failed)

    @property
    def last(self) -> Optional[Trial]:
        return self.trials[-1] if self.trials else None

    def tried(self) -> Tuple[int, ...]:
        return tuple(t.param for t in self.trials) + self.failed

    def is_redundant(self, value: int, epsilon: int) -> bool:
        """True if ``value`` is within epsilon of a parameter already tried."""
        return any(abs(value - p) < epsilon for p in self.tried())

    def with_trial(self, trial: Trial, target: int) -> "SearchState":
        """Append a trial, keeping the largest fitting and smallest overshooting results."""
        best = self.best
        closest_over = self.closest_over

        if trial.fits(target):
            if best is None or trial.size > best.size:
                best = trial
        elif closest_over is None or trial.size < closest_over.size:
            closest_over = trial

        return replace(
            self,
            trials=self.trials + (trial,),
            best=best,
            closest_over=closest_over,
            consecutive_failures=0,
        )

    def with_failure(self, param: int) -> "SearchState":
        return replace(
            self,
            failed=self.failed + (param,),
            consecutive_failures=self.consecutive_failures + 1,
        )

    def with_bounds(self, bounds: SearchBounds) -> "SearchState":
        return replace(self, bounds=bounds)

    def with_current(self, param: int) -> "SearchState":
        return replace(self, current=param)

"""
Engine: Size-targeting search, ladder fallback and result selection.
"""

from .ladder import LadderFallbackManager, LadderOutcome, LadderRung, RungResult, validate_rungs
from .search import SearchController, SearchOutcome, SearchPolicy, StopReason
from .selector import ResultSelector
from .state import SearchBounds, SearchState, Trial

__all__ = [
    "LadderFallbackManager",
    "LadderOutcome",
    "LadderRung",
    "ResultSelector",
    "RungResult",
    "SearchBounds",
    "SearchController",
    "SearchOutcome",
    "SearchPolicy",
    "SearchState",
    "StopReason",
    "Trial",
    "validate_rungs",
]

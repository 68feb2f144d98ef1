"""
Sequencing subpackage for the schoolbus engine.

Public API:
- sequence_stops
- SequencingContext
- STRATEGIES
- two_opt / LocalSearchResult
"""

from .strategies import STRATEGIES, SequencingContext, sequence_stops
from .two_opt import LocalSearchResult, two_opt

__all__ = [
    "sequence_stops",
    "SequencingContext",
    "STRATEGIES",
    "two_opt",
    "LocalSearchResult",
]

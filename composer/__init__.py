"""Class composition engine (bounded local search over student partitions)."""

from .cache import TTLCache
from .content import ContentCompatibilityAnalyzer
from .gatherer import StudentDataGatherer
from .matrix import CompatibilityMatrix, CompatibilityMatrixBuilder
from .grouping import CandidateGrouping, CandidateGroupingGenerator
from .scoring import CompositionScorer
from .optimizer import LocalSearchOptimizer, OptimizationOutcome
from .builder import ClassCompositionBuilder
from .engine import ClassCompositionEngine, InvalidCriteriaError

__all__ = [
    "TTLCache",
    "ContentCompatibilityAnalyzer",
    "StudentDataGatherer",
    "CompatibilityMatrix",
    "CompatibilityMatrixBuilder",
    "CandidateGrouping",
    "CandidateGroupingGenerator",
    "CompositionScorer",
    "LocalSearchOptimizer",
    "OptimizationOutcome",
    "ClassCompositionBuilder",
    "ClassCompositionEngine",
    "InvalidCriteriaError",
]

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class GroupingStrategy(str, Enum):
    HOMOGENEOUS = "homogeneous"
    HETEROGENEOUS = "heterogeneous"
    MIXED = "mixed"


class OptimizeFor(str, Enum):
    CONTENT = "content"
    SOCIAL = "social"
    PROGRESS = "progress"
    BALANCED = "balanced"


# ─── CONSTRAINTS ───

class CompositionCriteria(BaseModel):
    """Hard bounds of a composition run. All values must be positive."""
    # Largest allowed group (hard limit of the academy: 9)
    max_students: int = Field(9, gt=0,
        description="Maximum students per group")
    # Smallest group that may run as a group class
    min_students: int = Field(2, gt=0,
        description="Minimum students per group")
    # Tolerated variance of the focus content difficulty
    max_difficulty_variance: float = Field(3.0, gt=0,
        description="Max. variance of focus difficulty inside a group")
    # Tolerated spread of average progress inside a group (percentage points)
    max_progress_gap: float = Field(30.0, gt=0,
        description="Max. progress gap inside a group (percentage points)")
    # Minimum share of members that should need the focus content (0–1)
    content_compatibility_threshold: float = Field(0.7, gt=0, le=1.0,
        description="Min. content alignment (fraction)")
    # Relative weight of peer fit when ranking partners
    peer_compatibility_weight: float = Field(0.3, gt=0, le=1.0,
        description="Weight of peer compatibility")

    @model_validator(mode='after')
    def _check_size_bounds(self):
        if self.max_students < self.min_students:
            raise ValueError(
                f"max_students ({self.max_students}) < min_students ({self.min_students})"
            )
        return self


# ─── POLICY KNOBS ───

class CompatibilityPolicy(BaseModel):
    """Constants of the pairwise compatibility formula and the greedy strategies."""
    # Points when two students share at least one lesson
    shared_content_points: float = Field(40.0, ge=0)
    # Multipliers of the 0–1 sub-measures
    learning_style_weight: float = Field(25.0, ge=0)
    pace_weight: float = Field(25.0, ge=0)
    social_weight: float = Field(10.0, ge=0)
    # Sub-measure values for identical / partially matching / different
    exact_match: float = Field(1.0, ge=0, le=1.0)
    partial_match: float = Field(0.7, ge=0, le=1.0)
    mismatch: float = Field(0.3, ge=0, le=1.0)
    # Pace compatibility when a student has no progress records
    neutral_pace: float = Field(0.5, ge=0, le=1.0)
    # Social history gained per class booked together (capped at 1.0)
    social_per_shared_class: float = Field(0.2, ge=0, le=1.0)
    # Lessons of the same unit at most this far apart count as shared
    lesson_tolerance: int = Field(1, ge=0)
    # Pair score a candidate needs to join a seed in the social strategy
    social_group_threshold: float = Field(60.0, ge=0, le=100.0)
    # Width of a progress bucket in percentage points
    progress_band_width: float = Field(25.0, gt=0, le=100.0)
    # Focus content per composition (ClassComposition holds at most 3)
    max_focus_items: int = Field(3, ge=1, le=3)


class ScoringWeights(BaseModel):
    """Weights of the five composition sub-scores (must add up to 1)."""
    content: float = Field(0.30, ge=0)
    difficulty: float = Field(0.25, ge=0)
    progress: float = Field(0.20, ge=0)
    social: float = Field(0.15, ge=0)
    size: float = Field(0.10, ge=0)

    @model_validator(mode='after')
    def _check_sum(self):
        total = self.content + self.difficulty + self.progress + self.social + self.size
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must add up to 1.0 (got {total:.3f})")
        return self


# ─── GROUPING ───

class GroupingOptions(BaseModel):
    """Options steering candidate generation and local search."""
    # homogeneous/mixed bucket progress by band and pace, heterogeneous by pace only
    strategy: GroupingStrategy = Field(GroupingStrategy.MIXED)
    # Which candidate strategies run (balanced = all three)
    optimize_for: OptimizeFor = Field(OptimizeFor.BALANCED)
    # Leftover students become 1:1 classes instead of being reported unplaced
    allow_individual_classes: bool = True
    # Struggling students are placed first
    prioritize_struggling_students: bool = True
    # Upper bound of accepted local-search moves
    max_iterations: int = Field(100, ge=0)
    # Compositions below this score fraction are reported as low confidence
    min_confidence_threshold: float = Field(0.6, ge=0.0, le=1.0)
    compatibility: CompatibilityPolicy = Field(default_factory=CompatibilityPolicy)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)


# ─── ENGINE ───

class EngineSettings(BaseModel):
    """Resource settings of the engine."""
    # Thread pool size for data gathering, matrix and move evaluation
    max_workers: int = Field(4, ge=1,
        description="Worker threads (1 = sequential)")
    # Provider calls per student/pair before giving up
    retry_attempts: int = Field(3, ge=1,
        description="Provider attempts")
    # Linear backoff base (attempt n waits n × delay)
    retry_delay_seconds: float = Field(1.0, ge=0,
        description="Retry backoff base (seconds)")
    # Lifetime of cached booking-history lookups
    cache_ttl_seconds: float = Field(300.0, ge=0,
        description="TTL of the booking-history cache (seconds, 0 = no cache)")
    # Wall-clock bound of the local search; best partition so far is returned
    time_limit_seconds: Optional[float] = Field(None, gt=0,
        description="Local search time limit (seconds)")


# ─── TOTAL CONFIG ───

class ComposerConfig(BaseModel):
    """Complete configuration of the composition engine."""
    # Name of the academy / site
    academy_name: str = Field("HeyPeter Academy")
    criteria: CompositionCriteria = Field(default_factory=CompositionCriteria)
    options: GroupingOptions = Field(default_factory=GroupingOptions)
    engine: EngineSettings = Field(default_factory=EngineSettings)

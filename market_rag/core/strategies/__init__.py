"""Scoring and fusion strategies."""
from .fusion import LateFusion, cosine_similarity
from .scoring import (
    DiversityPenalty,
    FreshnessStrategy,
    LengthStrategy,
    RelevanceStrategy,
    ScoringConstants,
    ScoringStrategy,
    ScoringWeights,
)

__all__ = [
    "LateFusion",
    "cosine_similarity",
    "DiversityPenalty",
    "FreshnessStrategy",
    "LengthStrategy",
    "RelevanceStrategy",
    "ScoringConstants",
    "ScoringStrategy",
    "ScoringWeights",
]

"""Symbol Matcher - Score similarity of hand-drawn symbol images."""

from .config import PRIMARY_WEIGHTS, SIMPLE_WEIGHTS, MatchConfig, MetricName, MetricWeights
from .matcher import SymbolMatcher, combined_match, simple_match
from .metrics import (
    contour_area_match,
    feature_match,
    histogram_match,
    hu_moments_match,
    shape_match,
    template_match,
)
from .models import MatchBreakdown, PairResult, RankingReport
from .preprocessing import load_image, to_binary_mask, to_grayscale

__version__ = "0.1.0"

__all__ = [
    "PRIMARY_WEIGHTS",
    "SIMPLE_WEIGHTS",
    "MatchBreakdown",
    "MatchConfig",
    "MetricName",
    "MetricWeights",
    "PairResult",
    "RankingReport",
    "SymbolMatcher",
    "combined_match",
    "contour_area_match",
    "feature_match",
    "histogram_match",
    "hu_moments_match",
    "load_image",
    "shape_match",
    "simple_match",
    "template_match",
    "to_binary_mask",
    "to_grayscale",
]

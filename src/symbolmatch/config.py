#!/usr/bin/env python3
"""Configuration dataclasses for symbolmatch package."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal

# Type aliases
MetricName = Literal["hu", "shape", "feature", "histogram", "contour"]

ALL_METRICS: tuple[MetricName, ...] = ("hu", "shape", "feature", "histogram", "contour")
SIMPLE_METRICS: tuple[MetricName, ...] = ("shape", "feature")


@dataclass(frozen=True)
class MetricWeights:
    """Weight table used by the combiner.

    A metric with weight 0.0 can still be evaluated and reported in the
    breakdown, it just does not contribute to the total.
    """

    shape: float = 0.0
    feature: float = 0.0
    contour: float = 0.0
    hu: float = 0.0
    histogram: float = 0.0

    def as_dict(self) -> dict[str, float]:
        """Return weights keyed by metric name."""
        return asdict(self)

    def weight(self, metric: MetricName) -> float:
        """Weight for a single metric."""
        return float(getattr(self, metric))


# Weights tuned for hand-drawn symbol recognition
PRIMARY_WEIGHTS = MetricWeights(shape=0.5, feature=0.4, contour=0.1)
SIMPLE_WEIGHTS = MetricWeights(shape=0.5, feature=0.5)


@dataclass
class MatchConfig:
    """Main configuration for symbol comparison."""

    # Preprocessing
    binary_cutoff: int = 127  # Pixels strictly below become foreground

    # Feature matching
    ratio_threshold: float = 0.7
    fast_threshold: int = 10
    max_keypoints: int | None = None  # None = keep every detected corner

    # Hu moment log transform
    hu_epsilon: float = 1e-10

    # Combiner
    weights: MetricWeights = field(default_factory=lambda: PRIMARY_WEIGHTS)
    metrics: tuple[MetricName, ...] = ALL_METRICS
    parallel: bool = False
    log_breakdown: bool = True

    @classmethod
    def simple(cls) -> MatchConfig:
        """Shape + feature only variant with equal weights."""
        return cls(weights=SIMPLE_WEIGHTS, metrics=SIMPLE_METRICS)

    def validate(self) -> None:
        """Validate configuration parameters.

        Raises:
            ValueError: If any parameter is invalid.
        """
        if not 0 < self.binary_cutoff <= 255:
            msg = f"binary_cutoff must be in (0,255], got {self.binary_cutoff}"
            raise ValueError(msg)
        if not 0.0 < self.ratio_threshold <= 1.0:
            msg = f"ratio_threshold must be in (0,1], got {self.ratio_threshold}"
            raise ValueError(msg)
        if self.fast_threshold < 0:
            msg = f"fast_threshold must be >= 0, got {self.fast_threshold}"
            raise ValueError(msg)
        if self.max_keypoints is not None and self.max_keypoints < 1:
            msg = f"max_keypoints must be >= 1 or None, got {self.max_keypoints}"
            raise ValueError(msg)
        if self.hu_epsilon <= 0:
            msg = f"hu_epsilon must be positive, got {self.hu_epsilon}"
            raise ValueError(msg)
        if not self.metrics:
            msg = "metrics must name at least one metric"
            raise ValueError(msg)

        unknown = [m for m in self.metrics if m not in ALL_METRICS]
        if unknown:
            msg = f"Unknown metric(s): {', '.join(unknown)}"
            raise ValueError(msg)

        for name, weight in self.weights.as_dict().items():
            if weight < 0:
                msg = f"weight for {name} must be >= 0, got {weight}"
                raise ValueError(msg)
            if weight > 0 and name not in self.metrics:
                msg = f"metric {name} has weight {weight} but is not evaluated"
                raise ValueError(msg)

"""Symbol similarity using a weighted combination of independent metrics."""

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import numpy.typing as npt
from tqdm import tqdm

from .config import MatchConfig, MetricName
from .metrics import (
    contour_area_match,
    feature_match,
    histogram_match,
    hu_moments_match,
    shape_match,
)
from .models import MatchBreakdown, PairResult, RankingReport
from .preprocessing import to_grayscale

logger = logging.getLogger(__name__)

MetricFn = Callable[[npt.NDArray[Any], npt.NDArray[Any]], float]


class SymbolMatcher:
    """Combined symbol similarity.

    Each configured metric is computed on the grayscale versions of both
    images:
    - hu: Hu moment invariants of the binary mask
    - shape: I2 distance between outer contours
    - feature: ratio-tested corner descriptor matches
    - histogram: intensity histogram correlation
    - contour: area/perimeter of the largest outer contour

    The total is the weighted sum of the breakdown. Weights are used as given
    (no normalization), and a metric may be evaluated with weight 0 purely for
    diagnostics.
    """

    def __init__(self, config: MatchConfig | None = None):
        """Initialize matcher.

        Args:
            config: Match configuration. Default is the primary weighting
                (shape 0.5, feature 0.4, contour 0.1; hu and histogram reported
                but unweighted).

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or MatchConfig()
        self.config.validate()
        self._metrics: dict[MetricName, MetricFn] = self._build_metrics()

    @classmethod
    def simple(cls) -> "SymbolMatcher":
        """Matcher using only shape and feature similarity, weighted equally."""
        return cls(MatchConfig.simple())

    def _build_metrics(self) -> dict[MetricName, MetricFn]:
        cfg = self.config
        available: dict[MetricName, MetricFn] = {
            "hu": lambda a, b: hu_moments_match(a, b, cfg.binary_cutoff, cfg.hu_epsilon),
            "shape": lambda a, b: shape_match(a, b, cfg.binary_cutoff),
            "feature": lambda a, b: feature_match(
                a, b, cfg.ratio_threshold, cfg.fast_threshold, cfg.max_keypoints
            ),
            "histogram": histogram_match,
            "contour": lambda a, b: contour_area_match(a, b, cfg.binary_cutoff),
        }
        return {name: available[name] for name in cfg.metrics}

    def compute_scores(
        self, gray1: npt.NDArray[Any], gray2: npt.NDArray[Any]
    ) -> dict[MetricName, float]:
        """Evaluate every configured metric on two grayscale images.

        Args:
            gray1: First grayscale image.
            gray2: Second grayscale image.

        Returns:
            Score per metric name, in configuration order.
        """
        if not self.config.parallel:
            return {name: fn(gray1, gray2) for name, fn in self._metrics.items()}

        # Metrics share no state, so they can run side by side
        with ThreadPoolExecutor(max_workers=len(self._metrics)) as pool:
            futures = {name: pool.submit(fn, gray1, gray2) for name, fn in self._metrics.items()}
            return {name: future.result() for name, future in futures.items()}

    def combine(self, scores: Mapping[str, float]) -> float:
        """Weighted sum of per-metric scores.

        Args:
            scores: Score per metric name.

        Returns:
            Sum of weight * score over the given metrics.
        """
        weights = self.config.weights
        return float(sum(weights.weight(name) * score for name, score in scores.items()))  # type: ignore[arg-type]

    def match(self, img1: npt.NDArray[Any], img2: npt.NDArray[Any]) -> MatchBreakdown:
        """Compare two images and report every metric plus the total.

        Args:
            img1: First image (grayscale, BGR or BGRA).
            img2: Second image (grayscale, BGR or BGRA).

        Returns:
            Breakdown with per-metric scores and the weighted total.

        Raises:
            ValueError: If either image is malformed.
        """
        gray1 = to_grayscale(img1)
        gray2 = to_grayscale(img2)

        scores = self.compute_scores(gray1, gray2)
        breakdown = MatchBreakdown(total=self.combine(scores), **scores)

        if self.config.log_breakdown:
            logger.info(breakdown.summary())
        return breakdown

    def score(self, img1: npt.NDArray[Any], img2: npt.NDArray[Any]) -> float:
        """Weighted similarity of two images (higher is more similar)."""
        return self.match(img1, img2).total

    def rank(
        self,
        query: npt.NDArray[Any],
        references: Mapping[str, npt.NDArray[Any]],
        query_name: str = "query",
        top_n: int | None = None,
        show_progress: bool = True,
    ) -> RankingReport:
        """Score one query against a set of named reference images.

        Args:
            query: Query image.
            references: Reference images keyed by name.
            query_name: Name recorded for the query in each result.
            top_n: Keep only the N best results (None = all).
            show_progress: Show a tqdm progress bar.

        Returns:
            Report with results sorted by descending similarity.

        Raises:
            ValueError: If top_n is less than 1.
        """
        if top_n is not None and top_n < 1:
            msg = f"top_n must be >= 1 or None, got {top_n}"
            raise ValueError(msg)

        results = []
        for name, reference in tqdm(references.items(), desc="Ranking",
                                    disable=not show_progress):
            breakdown = self.match(query, reference)
            results.append(PairResult(a=query_name, b=name,
                                      similarity=breakdown.total, breakdown=breakdown))

        results.sort(key=lambda r: r.similarity, reverse=True)
        if top_n is not None:
            results = results[:top_n]
        return RankingReport(query=query_name, results=results)


def combined_match(
    img1: npt.NDArray[Any], img2: npt.NDArray[Any], config: MatchConfig | None = None
) -> MatchBreakdown:
    """Primary entry point: full breakdown with the configured weighting.

    Args:
        img1: First image.
        img2: Second image.
        config: Optional configuration (default primary weighting).

    Returns:
        Per-metric breakdown and weighted total.
    """
    return SymbolMatcher(config).match(img1, img2)


def simple_match(img1: npt.NDArray[Any], img2: npt.NDArray[Any]) -> MatchBreakdown:
    """Shape (0.5) + feature (0.5) variant of combined_match."""
    return SymbolMatcher.simple().match(img1, img2)

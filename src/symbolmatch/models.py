"""Pydantic models for type-safe data structures."""


from pydantic import BaseModel, Field


class MatchBreakdown(BaseModel):
    """Per-metric scores of one comparison plus the weighted total.

    Attributes:
        hu: Hu moment similarity, or None if not evaluated.
        shape: Contour shape distance similarity, or None if not evaluated.
        feature: Corner feature match ratio, or None if not evaluated.
        histogram: Intensity histogram correlation, or None if not evaluated.
        contour: Contour area/perimeter similarity, or None if not evaluated.
        total: Weighted sum of the evaluated scores.
    """
    hu: float | None = None
    shape: float | None = None
    feature: float | None = None
    histogram: float | None = None
    contour: float | None = None
    total: float

    def scores(self) -> dict[str, float]:
        """Evaluated metric scores keyed by metric name."""
        values = self.model_dump(exclude={"total"}, exclude_none=True)
        return {name: float(value) for name, value in values.items()}

    def summary(self) -> str:
        """One-line human readable rendering used in logs and CLI output."""
        parts = [f"{name.capitalize()}: {value:.4f}" for name, value in self.scores().items()]
        parts.append(f"Total: {self.total:.4f}")
        return ", ".join(parts)


class PairResult(BaseModel):
    """Similarity of one image pair.

    Attributes:
        a: Name of the first (query) image.
        b: Name of the second (reference) image.
        similarity: Combined similarity score.
        breakdown: Per-metric scores behind the similarity.
    """
    a: str
    b: str
    similarity: float
    breakdown: MatchBreakdown | None = None


class RankingReport(BaseModel):
    """Results of ranking one query against a reference set.

    Attributes:
        query: Name of the query image.
        results: Pair results sorted by descending similarity.
    """
    query: str
    results: list[PairResult] = Field(default_factory=list)

    @property
    def best(self) -> PairResult | None:
        """Highest scoring pair, if any."""
        return self.results[0] if self.results else None

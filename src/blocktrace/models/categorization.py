"""Categorization models."""

from pydantic import BaseModel, ConfigDict, Field

from blocktrace.models.trace import CategoryType, NormalizedTrace


class CategoryDetails(BaseModel):
    """Final category assigned to a trace."""

    model_config = ConfigDict(frozen=True)

    primary_category: CategoryType
    subcategory: str
    confidence: float = Field(ge=0.0, le=1.0)
    description: str
    color: str


class CategorizedTransaction(NormalizedTrace):
    """NormalizedTrace enriched with category, scores and relationships.

    Relationship tags are attached in a second pass over the whole batch
    with ``model_copy(update=...)``, so instances stay immutable.
    """

    category: CategoryDetails
    risk_score: int = Field(ge=0, le=100)
    complexity_score: int = Field(ge=0, le=100)
    relationships: list[str] = Field(default_factory=list)


class ScoreDistribution(BaseModel):
    """Low/medium/high bucket counts for a 0-100 score."""

    low: int = 0
    medium: int = 0
    high: int = 0


class CategorizationStatistics(BaseModel):
    """Aggregate view over a categorized batch."""

    total_transactions: int = 0
    category_distribution: dict[str, int] = Field(default_factory=dict)
    risk_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    complexity_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    token_transactions: int = 0
    failed_transactions: int = 0

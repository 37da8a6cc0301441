"""Semantic term suggestions for search.

Ranks stored entity labels against a free-text query by cosine similarity of
their hashed embeddings.
"""

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cvworker.config import settings
from cvworker.models import CvEntity, EntityType
from cvworker.schemas import Suggestion, SuggestionCandidate
from cvworker.services.embedding import cosine_similarity, embed

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5


def suggest_terms(
    query: str,
    candidates: Sequence[SuggestionCandidate],
    applied_values: Iterable[str] = (),
    threshold: float | None = None,
    limit: int = MAX_SUGGESTIONS,
) -> list[Suggestion]:
    """
    Suggest entity labels semantically close to a query.

    Args:
        query: Free-text search input
        candidates: Stored entities with precomputed embeddings
        applied_values: Filter values the caller already applied (excluded)
        threshold: Minimum cosine similarity (configured default when None)
        limit: Maximum number of suggestions

    Returns:
        Best-scoring suggestion per (type, label), highest score first
    """
    if threshold is None:
        threshold = settings.suggestion_similarity_threshold

    query_embedding = embed(query)
    applied = {value.strip().lower() for value in applied_values}
    best: dict[tuple[EntityType, str], Suggestion] = {}

    for candidate in candidates:
        if not candidate.embedding:
            continue

        key_label = candidate.label.strip().lower()
        if key_label in applied:
            continue

        score = cosine_similarity(query_embedding, candidate.embedding)
        if score < threshold:
            continue

        key = (candidate.entity_type, key_label)
        existing = best.get(key)
        if existing is None or existing.score < score:
            best[key] = Suggestion(
                entity_type=candidate.entity_type, label=candidate.label, score=score
            )

    ranked = sorted(best.values(), key=lambda suggestion: suggestion.score, reverse=True)
    return ranked[:limit]


async def load_suggestion_candidates(
    session: AsyncSession,
    entity_types: Sequence[EntityType] | None = None,
    limit: int | None = None,
) -> list[SuggestionCandidate]:
    """Load the capped candidate set of embedded entities, newest first."""
    query = (
        select(CvEntity.entity_type, CvEntity.label, CvEntity.embedding)
        .where(CvEntity.embedding.is_not(None))
        .order_by(CvEntity.updated_at.desc())
        .limit(limit or settings.suggestion_candidate_limit)
    )
    if entity_types:
        query = query.where(CvEntity.entity_type.in_(list(entity_types)))

    result = await session.execute(query)
    candidates = [
        SuggestionCandidate(
            entity_type=row.entity_type,
            label=row.label,
            embedding=[float(value) for value in row.embedding],
        )
        for row in result
    ]
    logger.debug(f"Loaded {len(candidates)} suggestion candidates")
    return candidates

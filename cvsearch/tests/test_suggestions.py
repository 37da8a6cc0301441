from uuid import uuid4

import pytest

from cvworker.models import CvEntity, EntitySource, EntityType
from cvworker.schemas import SuggestionCandidate
from cvworker.services.embedding import embed
from cvworker.services.suggestions import load_suggestion_candidates, suggest_terms

from conftest import BASE_TIME, add_version, create_cv


def candidate(label, entity_type=EntityType.SKILL, embedding=None):
    return SuggestionCandidate(
        entity_type=entity_type,
        label=label,
        embedding=embedding if embedding is not None else embed(label),
    )


class TestSuggestTerms:
    def test_exact_match_scores_one(self):
        suggestions = suggest_terms("Kubernetes", [candidate("Kubernetes")], threshold=0.6)

        assert len(suggestions) == 1
        assert suggestions[0].label == "Kubernetes"
        assert suggestions[0].score > 0.99

    def test_below_threshold_dropped(self):
        suggestions = suggest_terms(
            "Kubernetes", [candidate("Python"), candidate("Kubernetes")], threshold=0.6
        )
        assert [s.label for s in suggestions] == ["Kubernetes"]

    def test_applied_values_excluded_case_insensitive(self):
        suggestions = suggest_terms(
            "python",
            [candidate("Python"), candidate("Python developer")],
            applied_values=["  PYTHON "],
            threshold=0.5,
        )
        assert [s.label for s in suggestions] == ["Python developer"]

    def test_stored_label_whitespace_ignored_for_applied_values(self):
        suggestions = suggest_terms(
            "python",
            [candidate(" Python ", embedding=embed("Python")), candidate("Python developer")],
            applied_values=["python"],
            threshold=0.5,
        )
        assert [s.label for s in suggestions] == ["Python developer"]

    def test_candidates_without_embedding_skipped(self):
        suggestions = suggest_terms(
            "python", [candidate("Python", embedding=[])], threshold=0.1
        )
        assert suggestions == []

    def test_best_score_per_type_and_label(self):
        weak = [0.0] * len(embed("python"))
        weak[0] = 1.0
        weak_but_matching = [a + b for a, b in zip(embed("python"), weak, strict=True)]

        suggestions = suggest_terms(
            "python",
            [
                candidate("python", embedding=weak_but_matching),
                candidate("Python"),
                candidate("Python", entity_type=EntityType.LANGUAGE),
            ],
            threshold=0.5,
        )

        assert len(suggestions) == 2
        skill = next(s for s in suggestions if s.entity_type == EntityType.SKILL)
        assert skill.label == "Python"
        assert skill.score > 0.99

    def test_sorted_and_limited(self):
        labels = [
            "go",
            "go developer",
            "go backend developer",
            "senior go backend developer",
            "go rust",
            "go rust python",
            "go rust python java",
        ]
        suggestions = suggest_terms("go", [candidate(label) for label in labels], threshold=0.1)

        assert len(suggestions) == 5
        assert suggestions[0].label == "go"
        scores = [s.score for s in suggestions]
        assert scores == sorted(scores, reverse=True)

    def test_configured_threshold_used_by_default(self):
        # "python developer" vs "python" is ~0.707, above the 0.6 default
        suggestions = suggest_terms("python", [candidate("python developer")])
        assert [s.label for s in suggestions] == ["python developer"]

    def test_empty_query(self):
        assert suggest_terms("", [candidate("Python")], threshold=0.1) == []


class TestLoadSuggestionCandidates:
    async def test_loads_embedded_entities(self, session):
        cv = await create_cv(session)
        version = await add_version(session, cv)
        session.add_all(
            [
                CvEntity(
                    id=uuid4(),
                    cv_id=cv.id,
                    version_id=version.id,
                    entity_type=EntityType.SKILL,
                    label="Terraform",
                    confidence=0.75,
                    source=EntitySource.PARSER,
                    entity_metadata={},
                    embedding=embed("Terraform"),
                    created_at=BASE_TIME,
                    updated_at=BASE_TIME,
                ),
                CvEntity(
                    id=uuid4(),
                    cv_id=cv.id,
                    version_id=version.id,
                    entity_type=EntityType.CERTIFICATION,
                    label="No embedding",
                    confidence=0.7,
                    source=EntitySource.MANUAL,
                    entity_metadata={},
                    embedding=None,
                    created_at=BASE_TIME,
                    updated_at=BASE_TIME,
                ),
            ]
        )
        await session.commit()

        candidates = await load_suggestion_candidates(session)

        assert [c.label for c in candidates] == ["Terraform"]
        assert candidates[0].embedding == pytest.approx(embed("Terraform"), abs=1e-6)

        suggestions = suggest_terms("terraform", candidates, threshold=0.6)
        assert [s.label for s in suggestions] == ["Terraform"]

    async def test_filters_by_entity_type(self, session):
        cv = await create_cv(session)
        version = await add_version(session, cv)
        for entity_type, label in [(EntityType.SKILL, "Go"), (EntityType.LANGUAGE, "English")]:
            session.add(
                CvEntity(
                    id=uuid4(),
                    cv_id=cv.id,
                    version_id=version.id,
                    entity_type=entity_type,
                    label=label,
                    confidence=0.7,
                    source=EntitySource.PARSER,
                    entity_metadata={},
                    embedding=embed(label),
                    created_at=BASE_TIME,
                    updated_at=BASE_TIME,
                )
            )
        await session.commit()

        candidates = await load_suggestion_candidates(session, entity_types=[EntityType.LANGUAGE])

        assert [c.label for c in candidates] == ["English"]

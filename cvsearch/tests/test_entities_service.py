from uuid import uuid4

import pytest
from pydantic import ValidationError

from cvworker.models import CvEntity, EntitySource, EntityType, ParseStatus
from cvworker.schemas import ManualEntityInput
from cvworker.services.embedding import embed
from cvworker.services.entities import (
    replace_manual_entities,
    request_reparse,
    resolve_cv_version,
)

from conftest import BASE_TIME, add_version, create_cv, load_history, load_version


def parser_entity(cv, version, label):
    return CvEntity(
        id=uuid4(),
        cv_id=cv.id,
        version_id=version.id,
        entity_type=EntityType.SKILL,
        label=label,
        confidence=0.75,
        source=EntitySource.PARSER,
        entity_metadata={"parserVersion": "v1"},
        embedding=embed(label),
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


class TestResolveCvVersion:
    async def test_defaults_to_latest_version(self, session):
        cv = await create_cv(session)
        await add_version(session, cv)
        latest = await add_version(session, cv)

        version = await resolve_cv_version(session, cv.id)

        assert version.id == latest.id

    async def test_unknown_cv(self, session):
        with pytest.raises(ValueError, match="not found"):
            await resolve_cv_version(session, uuid4())

    async def test_cv_without_versions(self, session):
        cv = await create_cv(session)

        with pytest.raises(ValueError, match="does not have an uploaded version"):
            await resolve_cv_version(session, cv.id)

    async def test_version_of_another_cv(self, session):
        cv = await create_cv(session)
        await add_version(session, cv)
        other = await create_cv(session, consultant_name="Grace Hopper")
        foreign = await add_version(session, other)

        with pytest.raises(ValueError, match="not found for CV"):
            await resolve_cv_version(session, cv.id, foreign.id)


class TestRequestReparse:
    async def test_resets_parse_state(self, session):
        cv = await create_cv(session)
        version = await add_version(
            session, cv, parse_status=ParseStatus.ERROR, parsed_at=BASE_TIME
        )

        queued_id = await request_reparse(session, cv.id)

        assert queued_id == version.id
        stored = await load_version(session, version.id)
        assert stored.parse_status == ParseStatus.PENDING
        assert stored.parsed_at is None
        assert stored.parse_error is None

        history = await load_history(session, cv.id, version.id)
        assert history.parse_status == ParseStatus.PENDING
        assert history.parsed_at is None


class TestReplaceManualEntities:
    async def test_replaces_manual_entities_only(self, session):
        cv = await create_cv(session)
        version = await add_version(session, cv)
        session.add(parser_entity(cv, version, "Go"))
        await session.commit()

        await replace_manual_entities(
            session,
            cv.id,
            version.id,
            [{"entity_type": "skill", "label": "Erlang"}],
        )
        entities = await replace_manual_entities(
            session,
            cv.id,
            version.id,
            [
                ManualEntityInput(entity_type=EntityType.SKILL, label=" Elixir "),
                {"entity_type": "certification", "label": "CKA", "confidence": 0.99},
            ],
        )

        assert [(e.label, e.source) for e in entities] == [
            ("CKA", EntitySource.MANUAL),
            ("Elixir", EntitySource.MANUAL),
            ("Go", EntitySource.PARSER),
        ]
        elixir = entities[1]
        assert elixir.confidence == 0.95
        assert elixir.entity_metadata == {"manual": True}
        assert len(elixir.embedding) == 256

    async def test_marks_version_parsed(self, session):
        cv = await create_cv(session)
        version = await add_version(session, cv)

        await replace_manual_entities(
            session, cv.id, None, [{"entity_type": "language", "label": "Norwegian"}]
        )

        stored = await load_version(session, version.id)
        assert stored.parse_status == ParseStatus.PARSED
        assert stored.parsed_at is not None
        history = await load_history(session, cv.id, version.id)
        assert history.parse_status == ParseStatus.PARSED

    async def test_blank_label_rejected(self, session):
        cv = await create_cv(session)
        await add_version(session, cv)

        with pytest.raises(ValidationError):
            await replace_manual_entities(
                session, cv.id, None, [{"entity_type": "skill", "label": "   "}]
            )

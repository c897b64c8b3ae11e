"""Tests specific to the JSON collection backend."""
import re

import pytest
import pytest_asyncio

from doccrud.filters import Condition
from doccrud.repositories import CollectionRepository
from doccrud.schemas import DocumentSchema

from tests.conftest import OFFICE_SCHEMA

NOTES_SCHEMA = DocumentSchema(name="notes", generated_id=True)


@pytest_asyncio.fixture
async def notes(collection_db):
    repository = CollectionRepository(collection_db, NOTES_SCHEMA)
    await collection_db.using_session(repository.init)
    return repository


@pytest_asyncio.fixture
async def offices(collection_db):
    repository = CollectionRepository(collection_db, OFFICE_SCHEMA)
    await collection_db.using_session(repository.init)
    return repository


class TestSchemalessDocuments:
    """Test collections without declared properties."""

    @pytest.mark.asyncio
    async def test_generated_id(self, notes):
        note = await notes.db.using_session(lambda s: notes.create_document(s, {"title": "Plan"}))

        assert re.fullmatch(r"[0-9a-f]{21}", note["_id"])
        assert note == {"_id": note["_id"], "title": "Plan"}

    @pytest.mark.asyncio
    async def test_generated_id_uses_alias_prefix(self, offices):
        office = await offices.db.using_session(lambda s: offices.create_document(s, {"name": "HQ"}))

        assert re.fullmatch(r"off_[0-9a-f]{21}", office["_id"])

    @pytest.mark.asyncio
    async def test_update_keeps_stored_keys(self, notes):
        """Test updates merge into the stored document."""
        note = await notes.db.using_session(
            lambda s: notes.create_document(s, {"title": "Plan", "meta": {"pages": 3}})
        )

        updated = await notes.db.using_session(lambda s: notes.update_document(s, note["_id"], {"title": "Draft"}))

        assert updated == {"_id": note["_id"], "title": "Draft", "meta": {"pages": 3}}

    @pytest.mark.asyncio
    async def test_nested_path_filter(self, notes):
        async def seed(session):
            await notes.create_document(session, {"title": "Short", "meta": {"pages": 3}})
            await notes.create_document(session, {"title": "Long", "meta": {"pages": 300}})

        await notes.db.using_session(seed)

        page = await notes.db.using_session(
            lambda s: notes.filter_documents_by_criteria(s, Condition.gr("meta.pages", 10))
        )

        assert [note["title"] for note in page.data] == ["Long"]

    @pytest.mark.asyncio
    async def test_search_returns_whole_documents(self, notes):
        note = await notes.db.using_session(
            lambda s: notes.create_document(s, {"title": "Quarterly Plan", "meta": {"pages": 3}})
        )

        page = await notes.db.using_session(lambda s: notes.search_documents(s, {"title": "%PLAN"}))

        assert page.data == [note]

    @pytest.mark.asyncio
    async def test_group_by_nested_path(self, notes):
        async def seed(session):
            for pages in (3, 3, 7):
                await notes.create_document(session, {"title": "Note", "meta": {"pages": pages}})

        await notes.db.using_session(seed)

        rows = await notes.db.using_session(lambda s: notes.group_by_documents(s, [
            {"field": "meta.pages", "alias": "pages"},
            {"field": "_id", "alias": "notes", "aggregate": "COUNT"},
        ]))

        assert sorted(rows, key=lambda row: row["pages"]) == [
            {"pages": 3, "notes": 2},
            {"pages": 7, "notes": 1},
        ]


class TestDeclaredProperties:
    """Test searches rebuilt from declared property columns."""

    @pytest.mark.asyncio
    async def test_search_projects_declared_properties(self, offices):
        office = await offices.db.using_session(
            lambda s: offices.create_document(s, {"name": "HQ", "places": 12})
        )

        page = await offices.db.using_session(lambda s: offices.search_documents(s, {"name": "hq"}))

        assert page.data == [office]
        assert isinstance(office["_id"], str)

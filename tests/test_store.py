"""Tests for shortmail.db (Database, MailStore) against SQLite."""

from __future__ import annotations

import pytest

from shortmail.db import Database, MailStore


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path}/mail.db")
    await db.create_schema()
    yield db
    await db.close()


@pytest.fixture
def store(database: Database) -> MailStore:
    return MailStore(database.session)


async def _insert(store: MailStore, mailbox_id: str, subject: str, created_at: int):
    return await store.insert(mailbox_id, subject, "text", "<pre>text</pre>", "a@b.org", created_at)


class TestInsert:
    @pytest.mark.asyncio
    async def test_assigns_id_and_keeps_fields(self, store: MailStore):
        mail = await store.insert("box", "Hi", "body", "<p>body</p>", "alice@example.org", 1_700_000_000)

        assert mail.id is not None
        assert mail.recipient == "box"
        assert mail.subject == "Hi"
        assert mail.body_text == "body"
        assert mail.body_html == "<p>body</p>"
        assert mail.sender == "alice@example.org"
        assert mail.created_at == 1_700_000_000

    @pytest.mark.asyncio
    async def test_schema_creation_is_idempotent(self, database: Database, store: MailStore):
        await _insert(store, "box", "kept", 1)
        await database.create_schema()
        assert len(await store.query_recent("box")) == 1


class TestQueryRecent:
    @pytest.mark.asyncio
    async def test_newest_first(self, store: MailStore):
        await _insert(store, "box", "old", 100)
        await _insert(store, "box", "new", 300)
        await _insert(store, "box", "mid", 200)

        subjects = [mail.subject for mail in await store.query_recent("box")]
        assert subjects == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_same_timestamp_ordered_by_insertion(self, store: MailStore):
        await _insert(store, "box", "first", 100)
        await _insert(store, "box", "second", 100)

        subjects = [mail.subject for mail in await store.query_recent("box")]
        assert subjects == ["second", "first"]

    @pytest.mark.asyncio
    async def test_limit(self, store: MailStore):
        for i in range(5):
            await _insert(store, "box", f"m{i}", i)

        subjects = [mail.subject for mail in await store.query_recent("box", limit=2)]
        assert subjects == ["m4", "m3"]

    @pytest.mark.asyncio
    async def test_scoped_to_mailbox(self, store: MailStore):
        await _insert(store, "box", "mine", 100)
        await _insert(store, "other", "theirs", 200)

        assert [mail.subject for mail in await store.query_recent("box")] == ["mine"]
        assert await store.query_recent("empty") == []


class TestDeleteOlderThan:
    @pytest.mark.asyncio
    async def test_deletes_strictly_older(self, store: MailStore):
        await _insert(store, "box", "expired", 99)
        await _insert(store, "box", "boundary", 100)
        await _insert(store, "other", "fresh", 200)

        assert await store.delete_older_than(100) == 1
        assert [mail.subject for mail in await store.query_recent("box")] == ["boundary"]
        assert len(await store.query_recent("other")) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, store: MailStore):
        assert await store.delete_older_than(100) == 0

"""Integration tests for the aiosqlite probe against an in-memory database."""

import asyncio

import aiosqlite
import pytest

from probekit.probes.sqlite import SqliteProbe

pytestmark = [pytest.mark.integration, pytest.mark.tier(2)]


@pytest.fixture
def probe(agent):
    probe = agent.register(SqliteProbe)
    yield probe
    agent.destroy()


async def test_queries_on_attached_connection(agent, probe, sample_sink) -> None:
    async with aiosqlite.connect(":memory:") as db:
        agent.attach("aiosqlite", db)
        await db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
        await db.execute("INSERT INTO users (name) VALUES (?)", ("alice",))
        await db.commit()
        async with db.execute("SELECT name FROM users") as cursor:
            rows = await cursor.fetchall()

    assert rows == [("alice",)]
    samples = sample_sink.drain()
    assert [s.command for s in samples] == ["CREATE", "INSERT", "commit", "SELECT"]
    insert = samples[1]
    assert insert.type == "SQLite"
    assert insert.group == "SQLite: INSERT"
    assert insert.arguments == ["INSERT INTO users (name) VALUES (?)", ["alice"]]
    assert insert.error is None


async def test_commit_can_be_scheduled_as_task(agent, probe, sample_sink) -> None:
    async with aiosqlite.connect(":memory:") as db:
        agent.attach("aiosqlite", db)
        task = asyncio.create_task(db.commit())
        await task

    [sample] = sample_sink.drain()
    assert sample.command == "commit"
    assert sample.error is None


async def test_module_attach_instruments_new_connections(agent, probe, sample_sink) -> None:
    agent.attach("aiosqlite", aiosqlite)

    async with aiosqlite.connect(":memory:") as db:
        rows = await db.execute_fetchall("SELECT 1")

    assert list(rows) == [(1,)]
    [sample] = sample_sink.drain()
    assert sample.command == "SELECT"
    assert sample.connection == {"database": ":memory:"}


async def test_module_attach_is_undone_by_destroy(agent, probe) -> None:
    original = aiosqlite.connect
    agent.attach("aiosqlite", aiosqlite)
    assert aiosqlite.connect is not original

    agent.destroy()

    assert aiosqlite.connect is original


async def test_failed_query_is_recorded_and_raised(agent, probe, sample_sink) -> None:
    async with aiosqlite.connect(":memory:") as db:
        probe.instrument_connection(db, ":memory:")
        with pytest.raises(aiosqlite.OperationalError):
            await db.execute("SELECT * FROM missing_table")

    [sample] = sample_sink.drain()
    assert sample.command == "SELECT"
    assert "no such table" in sample.error

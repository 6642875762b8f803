"""Example ASGI application instrumented with probekit.

Run with:
    uvicorn examples.asgi_example:app

Every request is written to stdout as one NDJSON sample, followed by a
sample per outgoing HTTP call and SQLite query made while serving it.

Endpoints:
    /            - counts visits in SQLite
    /upstream    - calls an external HTTP service
"""

import aiosqlite
import httpx

from probekit import Agent, AgentConfig
from probekit.adapters.frameworks.asgi import ASGIProbeMiddleware, Receive, Scope, Send
from probekit.probes import HttpxProbe, SqliteProbe

agent = Agent(AgentConfig(stdout=True))
agent.register(SqliteProbe)
agent.register(HttpxProbe)
agent.attach("aiosqlite", aiosqlite)

http_client = httpx.AsyncClient(timeout=5.0)
agent.attach("httpx", http_client)


async def count_visit() -> int:
    async with aiosqlite.connect("visits.db") as db:
        await db.execute("CREATE TABLE IF NOT EXISTS visits (id INTEGER PRIMARY KEY)")
        await db.execute("INSERT INTO visits DEFAULT VALUES")
        await db.commit()
        rows = await db.execute_fetchall("SELECT COUNT(*) FROM visits")
    return list(rows)[0][0]


async def application(scope: Scope, receive: Receive, send: Send) -> None:
    if scope["path"] == "/upstream":
        response = await http_client.get("https://example.com/")
        body = f"upstream answered {response.status_code}\n".encode()
    else:
        body = f"visit #{await count_visit()}\n".encode()

    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"text/plain")],
        }
    )
    await send({"type": "http.response.body", "body": body})


app = ASGIProbeMiddleware(application, agent, exclude_paths=["/favicon.ico"])

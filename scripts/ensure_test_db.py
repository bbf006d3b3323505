from __future__ import annotations

import asyncio
import re

import asyncpg
from sqlalchemy.engine import make_url

from offer_engine.core.config import get_settings
from offer_engine.core.integration_db_safety import assert_safe_integration_db

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


async def ensure_test_database(database_url: str) -> bool:
    """Create the integration-test database when missing. Returns True if created."""
    assert_safe_integration_db(database_url)

    url = make_url(database_url)
    db_name = (url.database or "").strip()
    if IDENTIFIER_RE.fullmatch(db_name) is None:
        raise RuntimeError(f"unsupported database name '{db_name}': use [A-Za-z0-9_] only")
    if url.username is None:
        raise RuntimeError("DATABASE_URL must include a username")

    conn = await asyncpg.connect(
        host=url.host or "localhost",
        port=int(url.port or 5432),
        user=url.username,
        password=url.password,
        database="postgres",
    )
    try:
        if await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name):
            return False
        await conn.execute(f'CREATE DATABASE "{db_name}"')
        return True
    finally:
        await conn.close()


def main() -> int:
    database_url = get_settings().database_url
    created = asyncio.run(ensure_test_database(database_url))
    state = "created" if created else "exists"
    print(f"ensure_test_db: {state} db={make_url(database_url).database}")  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import asyncio
import os

import pytest

from llm_gateway.core.db import Base, create_engine

_PROVIDER_ENV_VARS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GROQ_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "GUARDRAILS_ENABLED",
    "MODERATION_BACKEND",
    "GUARD_API_KEY",
)


@pytest.fixture()
def database_url(tmp_path) -> str:
    db_file = tmp_path / "test.sqlite3"
    return f"sqlite+aiosqlite:///{db_file}"


@pytest.fixture(autouse=True)
def _set_test_environment(database_url: str, monkeypatch: pytest.MonkeyPatch) -> None:
    os.environ["DATABASE_URL"] = database_url
    # No test may reach a real provider: start every test with no credentials.
    for name in _PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Settings are cached via @lru_cache; clear so each test sees its own environment.
    from llm_gateway.core.settings import get_settings

    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _create_test_schema(database_url: str) -> None:
    async def run() -> None:
        # Ensure all model modules are imported so Base.metadata is populated.
        from llm_gateway.feedback import models as _feedback_models  # noqa: F401

        engine = create_engine(database_url=database_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(run())


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from llm_gateway.main import create_app

    app = create_app()
    with TestClient(app) as c:
        yield c

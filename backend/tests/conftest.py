"""Shared fixtures: a throwaway SQLite database and a fake TMDB."""
from __future__ import annotations

import re
from typing import Any, Awaitable, Callable, Optional

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cinelog.api.deps import get_tmdb_client
from cinelog.clients.tmdb import TmdbClient
from cinelog.database import Base, get_db
from cinelog.main import app
from cinelog.services.webhook_config import issue_webhook_config

USER_ID = "user-1"


def matrix_payload() -> dict[str, Any]:
    return {
        "id": 603,
        "title": "The Matrix",
        "original_title": "The Matrix",
        "release_date": "1999-03-30",
        "runtime": 136,
        "poster_path": "/matrix.jpg",
        "overview": "Set in the 22nd century...",
        "genres": [{"id": 28, "name": "Action"}, {"id": 878, "name": "Science Fiction"}],
        "credits": {
            "cast": [
                {"name": "Carrie-Anne Moss", "order": 2},
                {"name": "Keanu Reeves", "order": 0},
                {"name": "Laurence Fishburne", "order": 1},
            ],
            "crew": [
                {"name": "Joel Silver", "job": "Producer"},
                {"name": "Lana Wachowski", "job": "Director"},
                {"name": "Lilly Wachowski", "job": "Director"},
            ],
        },
    }


def show_payload() -> dict[str, Any]:
    return {
        "id": 1399,
        "name": "Game of Thrones",
        "original_name": "Game of Thrones",
        "first_air_date": "2011-04-17",
        "last_air_date": "not-a-date",
        "status": "Ended",
        "overview": "Seven noble families fight for control...",
        "poster_path": "/got.jpg",
        "genres": [{"id": 18, "name": "Drama"}],
        "networks": [{"name": "HBO"}, {"name": "Sky Atlantic"}],
        "credits": {"cast": [{"name": "Emilia Clarke", "order": 1}, {"name": "Kit Harington", "order": 0}]},
    }


def season_payload(season_number: int = 1, episodes: int = 3) -> dict[str, Any]:
    return {
        "id": 3624 + season_number,
        "season_number": season_number,
        "name": f"Season {season_number}",
        "overview": "",
        "air_date": "2011-04-17",
        "poster_path": "/s1.jpg",
        "episodes": [
            {
                "id": 63000 + n,
                "episode_number": n,
                "name": f"Episode {n}",
                "overview": None,
                "air_date": "2011-04-17",
                "runtime": 60,
                "still_path": None,
            }
            for n in range(1, episodes + 1)
        ],
    }


class FakeTmdb:
    """In-memory TMDB answering the three endpoints the pipeline uses."""

    def __init__(self):
        self.movies: dict[int, dict] = {603: matrix_payload()}
        self.shows: dict[int, dict] = {1399: show_payload()}
        self.seasons: dict[tuple[int, int], dict] = {(1399, 1): season_payload()}
        self.status_overrides: dict[str, int] = {}
        self.calls: list[httpx.Request] = []
        self.before_response: Optional[Callable[[httpx.Request], Awaitable[None]]] = None

    def paths(self) -> list[str]:
        return [r.url.path for r in self.calls]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path.removeprefix("/3")

        if path in self.status_overrides:
            return httpx.Response(self.status_overrides[path], json={"status_message": "error"})

        if self.before_response:
            await self.before_response(request)

        data = None
        if m := re.fullmatch(r"/movie/(\d+)", path):
            data = self.movies.get(int(m.group(1)))
        elif m := re.fullmatch(r"/tv/(\d+)", path):
            data = self.shows.get(int(m.group(1)))
        elif m := re.fullmatch(r"/tv/(\d+)/season/(\d+)", path):
            data = self.seasons.get((int(m.group(1)), int(m.group(2))))

        if data is None:
            return httpx.Response(404, json={"status_code": 34, "status_message": "not found"})
        return httpx.Response(200, json=data)


@pytest.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cinelog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def fake_tmdb() -> FakeTmdb:
    return FakeTmdb()


@pytest.fixture()
def tmdb(fake_tmdb: FakeTmdb) -> TmdbClient:
    return TmdbClient("test-key", transport=httpx.MockTransport(fake_tmdb.handler))


@pytest.fixture()
async def api_key(session_factory) -> str:
    async with session_factory() as session:
        config = await issue_webhook_config(session, USER_ID)
        return config.api_key


@pytest.fixture()
async def client(session_factory, tmdb):
    """HTTP client against the app, wired to the test database and fake TMDB."""

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_tmdb_client] = lambda: tmdb
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def count(session_factory) -> Callable[..., Awaitable[int]]:
    """Row count in a fresh session, so results never come from a stale identity map."""

    async def _count(model, **filters) -> int:
        async with session_factory() as session:
            stmt = select(func.count()).select_from(model).filter_by(**filters)
            return await session.scalar(stmt)

    return _count

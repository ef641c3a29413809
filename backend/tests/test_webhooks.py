"""End-to-end tests for the Jellyfin webhook endpoints."""
import logging

import pytest
from sqlalchemy import select

from cinelog.models import (
    ExternalActionTag, Movie, MovieWatch, TvShow, TvShowEpisode, TvShowSeason, TvShowWatch,
)
from cinelog.services.webhook_config import disable_webhook_config, issue_webhook_config

from conftest import USER_ID

MOVIE_URL = "/api/v1/webhooks/jellyfin"
TV_URL = "/api/v1/webhooks/jellyfin/tv"


def movie_body(current="8000000000", total="10000000000", **extra):
    return {"tmdbId": "603", "totalRunTimeInTicks": total, "currentRunTimeInTicks": current, **extra}


def episode_body(season=1, episode=2, current=90, total=100, **extra):
    return {
        "tmdbId": "1399",
        "seasonNumber": season,
        "episodeNumber": episode,
        "totalRunTimeInTicks": total,
        "currentRunTimeInTicks": current,
        **extra,
    }


# ── Authentication ───────────────────────────────────────────────

async def test_missing_api_key(client, count):
    resp = await client.post(MOVIE_URL, json=movie_body())

    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing API key"}


async def test_invalid_api_key_writes_nothing(client, api_key, fake_tmdb, count):
    resp = await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": "nope"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid API key"}
    assert await count(Movie) == 0
    assert await count(MovieWatch) == 0
    assert fake_tmdb.calls == []


async def test_disabled_webhook(client, api_key, session_factory):
    async with session_factory() as session:
        await disable_webhook_config(session, USER_ID)

    resp = await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": api_key})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Webhook is disabled"}


async def test_malformed_json(client, api_key):
    resp = await client.post(
        MOVIE_URL,
        content=b"{tmdbId: 603",
        headers={"x-api-key": api_key, "content-type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid JSON body"}


# ── Movies ───────────────────────────────────────────────────────

async def test_completed_movie_is_tracked(client, api_key, session_factory, count):
    resp = await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": api_key})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["movieTitle"] == "The Matrix"
    assert await count(Movie, user_id=USER_ID, tmdb_id="603") == 1
    assert await count(MovieWatch) == 1

    async with session_factory() as session:
        watch = await session.get(MovieWatch, body["data"]["watchId"])
        assert watch.movie_id == body["data"]["movieId"]
        assert watch.user_id == USER_ID
        assert watch.watch_location == "ON_DEMAND"
        assert watch.streaming_service == "HOME_MEDIA_LIBRARY"
        tags = (await session.execute(
            select(ExternalActionTag).where(ExternalActionTag.movie_watch_id == watch.id)
        )).scalars().all()
        assert [(t.via, t.source) for t in tags] == [("WEBHOOK", "JELLYFIN")]


async def test_below_threshold_is_skipped(client, api_key, fake_tmdb, count):
    resp = await client.post(
        MOVIE_URL, json=movie_body(current="1000000000"), headers={"x-api-key": api_key},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["skipped"] is True
    assert "below 75% threshold" in body["message"]
    assert await count(MovieWatch) == 0
    assert await count(Movie) == 0
    assert fake_tmdb.calls == []


async def test_exactly_at_threshold_counts(client, api_key, count):
    resp = await client.post(
        MOVIE_URL, json=movie_body(current=75, total=100), headers={"x-api-key": api_key},
    )

    assert "data" in resp.json()
    assert await count(MovieWatch) == 1


async def test_zero_runtime_is_skipped(client, api_key, count):
    resp = await client.post(
        MOVIE_URL, json=movie_body(current=0, total=0), headers={"x-api-key": api_key},
    )

    assert resp.json()["skipped"] is True
    assert await count(MovieWatch) == 0


async def test_oversized_tick_literal_is_skipped(client, api_key, fake_tmdb, count):
    raw = (
        b'{"tmdbId": "603", "currentRunTimeInTicks": 100, "totalRunTimeInTicks": '
        + b"9" * 5000 + b"}"
    )

    resp = await client.post(
        MOVIE_URL, content=raw,
        headers={"x-api-key": api_key, "content-type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.json()["skipped"] is True
    assert await count(MovieWatch) == 0
    assert fake_tmdb.calls == []


async def test_missing_tmdb_id_is_skipped(client, api_key, count):
    resp = await client.post(
        MOVIE_URL, json={"totalRunTimeInTicks": 100, "currentRunTimeInTicks": 100},
        headers={"x-api-key": api_key},
    )

    assert resp.status_code == 200
    assert resp.json()["skipped"] is True
    assert "no TMDB ID" in resp.json()["message"]
    assert await count(MovieWatch) == 0


async def test_repeated_delivery_adds_watch_but_not_movie(client, api_key, count):
    for _ in range(2):
        resp = await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": api_key})
        assert resp.status_code == 200

    assert await count(Movie) == 1
    assert await count(MovieWatch) == 2


async def test_movie_unknown_to_tmdb(client, api_key, count):
    resp = await client.post(
        MOVIE_URL, json=movie_body(tmdbId="424242"), headers={"x-api-key": api_key},
    )

    assert resp.status_code == 500
    assert resp.json() == {"error": "Movie not found on TMDB"}
    assert await count(MovieWatch) == 0


async def test_tmdb_outage(client, api_key, fake_tmdb):
    fake_tmdb.status_overrides["/movie/603"] = 503

    resp = await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": api_key})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch movie details from TMDB"}


async def test_unexpected_failure_is_internal_error(client, api_key, fake_tmdb, count):
    # A payload without a title fails validation
    fake_tmdb.movies[603] = {"id": 603}

    resp = await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": api_key})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}
    assert await count(Movie) == 0


async def test_tmdb_outage_logged_once(client, api_key, fake_tmdb, caplog):
    fake_tmdb.status_overrides["/movie/603"] = 503

    with caplog.at_level(logging.INFO):
        await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": api_key})

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert "Failed to fetch movie details from TMDB" in errors[0].getMessage()


async def test_unexpected_failure_logged_once_with_traceback(client, api_key, fake_tmdb, caplog):
    fake_tmdb.movies[603] = {"id": 603}

    with caplog.at_level(logging.INFO):
        await client.post(MOVIE_URL, json=movie_body(), headers={"x-api-key": api_key})

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert errors[0].exc_info is not None


async def test_username_filter(client, session_factory, count):
    async with session_factory() as session:
        config = await issue_webhook_config(session, USER_ID, username_filter="Alice")

    headers = {"x-api-key": config.api_key}
    skipped = await client.post(MOVIE_URL, json=movie_body(NotificationUsername="bob"), headers=headers)
    tracked = await client.post(MOVIE_URL, json=movie_body(NotificationUsername="alice"), headers=headers)

    assert skipped.json()["skipped"] is True
    assert tracked.json()["success"] is True
    assert "data" in tracked.json()
    assert await count(MovieWatch) == 1


# ── Episodes ─────────────────────────────────────────────────────

async def test_completed_episode_is_tracked(client, api_key, count):
    resp = await client.post(TV_URL, json=episode_body(), headers={"x-api-key": api_key})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert set(data) == {"tvShowId", "seasonId", "episodeId", "watchId"}
    assert await count(TvShow) == 1
    assert await count(TvShowSeason) == 1
    assert await count(TvShowEpisode) == 3
    assert await count(TvShowWatch, tv_show_id=data["tvShowId"], episode_id=data["episodeId"]) == 1
    assert await count(ExternalActionTag, tv_show_watch_id=data["watchId"]) == 1


async def test_episode_unknown_to_tmdb_still_tracked(client, api_key, session_factory):
    resp = await client.post(TV_URL, json=episode_body(episode=42), headers={"x-api-key": api_key})

    assert resp.status_code == 200
    async with session_factory() as session:
        episode = await session.get(TvShowEpisode, resp.json()["data"]["episodeId"])
        assert episode.episode_number == 42
        assert episode.name is None


@pytest.mark.parametrize(
    "body",
    [
        {"tmdbId": "1399", "episodeNumber": 1, "totalRunTimeInTicks": 1, "currentRunTimeInTicks": 1},
        {"tmdbId": "1399", "seasonNumber": 1, "totalRunTimeInTicks": 1, "currentRunTimeInTicks": 1},
        {"seasonNumber": 1, "episodeNumber": 1, "totalRunTimeInTicks": 1, "currentRunTimeInTicks": 1},
    ],
)
async def test_episode_missing_fields_is_skipped(client, api_key, count, body):
    resp = await client.post(TV_URL, json=body, headers={"x-api-key": api_key})

    assert resp.status_code == 200
    assert resp.json()["skipped"] is True
    assert await count(TvShowWatch) == 0


async def test_episode_below_threshold_is_skipped(client, api_key, count):
    resp = await client.post(TV_URL, json=episode_body(current=10), headers={"x-api-key": api_key})

    assert resp.json()["skipped"] is True
    assert await count(TvShow) == 0


async def test_episode_show_unknown_to_tmdb(client, api_key):
    resp = await client.post(
        TV_URL, json=episode_body(tmdbId="77"), headers={"x-api-key": api_key},
    )

    assert resp.status_code == 500
    assert resp.json() == {"error": "TV show not found on TMDB"}


# ── Health ───────────────────────────────────────────────────────

async def test_health(client):
    resp = await client.get("/api/v1/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"

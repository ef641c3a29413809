from cinelog.config import Settings
from cinelog.services.integration_probe import probe_all


async def test_tmdb_not_configured(engine):
    results = await probe_all(Settings(tmdb_api_key=None), engine)

    assert results["database"] == {"status": "ok"}
    assert results["tmdb"] == {"status": "not_configured"}


async def test_tmdb_rejecting_key_reports_error(engine, tmdb, fake_tmdb):
    fake_tmdb.status_overrides["/configuration"] = 401

    results = await probe_all(Settings(tmdb_api_key="test-key"), engine, tmdb=tmdb)

    assert results["tmdb"] == {"status": "error"}
    assert fake_tmdb.paths() == ["/3/configuration"]

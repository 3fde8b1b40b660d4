from contextlib import asynccontextmanager

import pytest


class _Cursor:
    async def execute(self, query, params=None):
        return None

    async def fetchone(self):
        return {"?column?": 1}


@pytest.mark.anyio("asyncio")
async def test_healthz(async_client):
    resp = await async_client.get("/healthz")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload.get("ok") is True


@pytest.mark.anyio("asyncio")
async def test_readyz(async_client, monkeypatch):
    @asynccontextmanager
    async def _working_conn():
        yield _Cursor()

    monkeypatch.setattr("photovault.main.get_conn", _working_conn)
    resp = await async_client.get("/readyz")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload.get("database") == "ready"


@pytest.mark.anyio("asyncio")
async def test_readyz_handles_db_failure(async_client, monkeypatch):
    @asynccontextmanager
    async def _broken_conn():
        raise RuntimeError("db down")
        yield

    monkeypatch.setattr("photovault.main.get_conn", _broken_conn)
    resp = await async_client.get("/readyz")
    assert resp.status_code == 503
    assert resp.json()["detail"] == "database unavailable"


@pytest.mark.anyio("asyncio")
async def test_metrics_exposes_webhook_counters(async_client):
    resp = await async_client.get("/metrics")
    assert resp.status_code == 200
    assert "stripe_transfer_failures_total" in resp.text

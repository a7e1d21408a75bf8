import asyncio
import time
from datetime import datetime


def _parse_timestamp(value: str) -> datetime:
    assert value.endswith("Z")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def test_root_lists_known_endpoints(api_client) -> None:
    resp = await api_client.get("/")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["message"] == "API Monitoring Project with OpenTelemetry"
    _parse_timestamp(payload["timestamp"])
    assert payload["endpoints"] == {
        "health": "/api/health",
        "slow": "/api/slow",
        "error": "/api/error",
        "metrics": "http://localhost:9464/metrics",
    }


async def test_health_reports_status_and_uptime(api_client, settings) -> None:
    resp = await api_client.get("/api/health")
    assert resp.status_code == 200
    payload = resp.json()
    assert set(payload) == {"status", "timestamp", "uptime", "service"}
    assert payload["status"] == "healthy"
    assert payload["service"] == settings.service_name
    assert payload["uptime"] >= 0
    _parse_timestamp(payload["timestamp"])


async def test_health_uptime_never_decreases(api_client) -> None:
    uptimes = []
    for _ in range(5):
        resp = await api_client.get("/api/health")
        uptimes.append(resp.json()["uptime"])
    assert uptimes == sorted(uptimes)


async def test_error_endpoint_returns_scripted_failure(api_client) -> None:
    resp = await api_client.get("/api/error")
    assert resp.status_code == 500
    payload = resp.json()
    assert set(payload) == {"error", "message", "timestamp"}
    assert payload["error"] == "Internal Server Error"
    assert payload["message"] == "Simulated error for testing"
    _parse_timestamp(payload["timestamp"])


async def test_slow_endpoint_waits_for_configured_delay(api_client, settings) -> None:
    delay = settings.slow_delay_ms / 1000
    start = time.perf_counter()
    resp = await api_client.get("/api/slow")
    elapsed = time.perf_counter() - start

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["message"] == "This was a slow request"
    assert payload["delay"] == "0.2 seconds"
    _parse_timestamp(payload["timestamp"])
    assert elapsed >= delay - 0.01


async def test_slow_requests_do_not_block_other_requests(api_client, settings) -> None:
    delay = settings.slow_delay_ms / 1000

    async def timed(path: str):
        start = time.perf_counter()
        resp = await api_client.get(path)
        return resp, time.perf_counter() - start

    started = time.perf_counter()
    slow_requests = [asyncio.create_task(timed("/api/slow")) for _ in range(5)]
    await asyncio.sleep(delay / 4)

    health, health_elapsed = await timed("/api/health")
    results = await asyncio.gather(*slow_requests)
    total = time.perf_counter() - started

    assert health.status_code == 200
    assert health_elapsed < delay
    for resp, elapsed in results:
        assert resp.status_code == 200
        assert elapsed >= delay - 0.01
    # served side by side, not one after another
    assert total < delay * 5

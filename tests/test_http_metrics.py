import asyncio

from api_monitoring.observability.metrics import (
    HTTP_ACTIVE_REQUESTS,
    HTTP_REQUEST_DURATION_MS,
    HTTP_REQUESTS_TOTAL,
)


async def test_request_is_counted_and_timed_once(api_client, metric_point) -> None:
    resp = await api_client.get("/api/health")
    assert resp.status_code == 200

    labels = {"method": "GET", "route": "/api/health", "status": 200}
    assert metric_point(HTTP_REQUESTS_TOTAL, **labels).value == 1
    duration = metric_point(HTTP_REQUEST_DURATION_MS, **labels)
    assert duration.count == 1
    assert duration.sum >= 0
    assert metric_point(HTTP_ACTIVE_REQUESTS, method="GET", route="/api/health").value == 0


async def test_repeated_requests_accumulate_per_label_set(api_client, metric_point) -> None:
    for _ in range(3):
        await api_client.get("/api/health")
    await api_client.get("/api/error")

    assert metric_point(HTTP_REQUESTS_TOTAL, method="GET", route="/api/health", status=200).value == 3
    assert metric_point(HTTP_REQUESTS_TOTAL, method="GET", route="/api/error", status=500).value == 1
    assert metric_point(HTTP_REQUEST_DURATION_MS, method="GET", route="/api/error", status=500).count == 1


async def test_slow_request_duration_is_recorded_in_milliseconds(api_client, settings, metric_point) -> None:
    await api_client.get("/api/slow")
    point = metric_point(HTTP_REQUEST_DURATION_MS, method="GET", route="/api/slow", status=200)
    assert point.count == 1
    assert point.sum >= settings.slow_delay_ms - 10


async def test_templated_route_is_used_as_label(app, api_client, metric_point) -> None:
    async def get_item(item_id: int):
        return {"id": item_id}

    app.add_api_route("/api/items/{item_id}", get_item, methods=["GET"])

    await api_client.get("/api/items/1")
    await api_client.get("/api/items/2")

    point = metric_point(HTTP_REQUESTS_TOTAL, method="GET", route="/api/items/{item_id}", status=200)
    assert point.value == 2
    assert metric_point(HTTP_REQUESTS_TOTAL, method="GET", route="/api/items/1", status=200) is None


async def test_unmatched_path_falls_back_to_raw_path(api_client, metric_point) -> None:
    resp = await api_client.get("/does-not-exist")
    assert resp.status_code == 404
    assert metric_point(HTTP_REQUESTS_TOTAL, method="GET", route="/does-not-exist", status=404).value == 1
    assert metric_point(HTTP_ACTIVE_REQUESTS, method="GET", route="/does-not-exist").value == 0


async def test_handler_exception_is_counted_once(app, lenient_client, metric_point) -> None:
    async def explode():
        raise RuntimeError("boom")

    app.add_api_route("/api/explode", explode, methods=["GET"])

    resp = await lenient_client.get("/api/explode")
    assert resp.status_code == 500

    labels = {"method": "GET", "route": "/api/explode", "status": 500}
    assert metric_point(HTTP_REQUESTS_TOTAL, **labels).value == 1
    assert metric_point(HTTP_REQUEST_DURATION_MS, **labels).count == 1
    assert metric_point(HTTP_ACTIVE_REQUESTS, method="GET", route="/api/explode").value == 0


async def test_active_requests_track_in_flight_requests(api_client, settings, metric_point) -> None:
    delay = settings.slow_delay_ms / 1000
    in_flight = [asyncio.create_task(api_client.get("/api/slow")) for _ in range(3)]
    await asyncio.sleep(delay / 2)

    assert metric_point(HTTP_ACTIVE_REQUESTS, method="GET", route="/api/slow").value == 3

    responses = await asyncio.gather(*in_flight)
    assert all(resp.status_code == 200 for resp in responses)
    assert metric_point(HTTP_ACTIVE_REQUESTS, method="GET", route="/api/slow").value == 0
    assert metric_point(HTTP_REQUESTS_TOTAL, method="GET", route="/api/slow", status=200).value == 3


async def test_active_requests_are_partitioned_by_method(app, api_client, metric_point) -> None:
    async def accept():
        return {"ok": True}

    app.add_api_route("/api/things", accept, methods=["GET", "POST"])

    await api_client.get("/api/things")
    await api_client.post("/api/things")

    assert metric_point(HTTP_REQUESTS_TOTAL, method="GET", route="/api/things", status=200).value == 1
    assert metric_point(HTTP_REQUESTS_TOTAL, method="POST", route="/api/things", status=200).value == 1
    assert metric_point(HTTP_ACTIVE_REQUESTS, method="POST", route="/api/things").value == 0

"""Unit tests for the HTTP API."""

from __future__ import annotations

from uuid import uuid4

import pytest

pytestmark = pytest.mark.anyio


async def _create_project(client, headers, name: str = "Launch ad") -> dict:
    resp = await client.post("/v1/projects", json={"name": name}, headers=headers)
    assert resp.status_code == 201
    return resp.json()


async def test_health(async_client) -> None:
    resp = await async_client.get("/health")

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "healthy"
    assert payload["generation_provider"] == "fake"
    assert payload["degraded_mode"] is True
    assert payload["database_ready"] is True
    assert payload["provider_circuit"] is None


async def test_request_id_is_echoed(async_client) -> None:
    resp = await async_client.get("/health", headers={"X-Request-ID": "req-123"})

    assert resp.headers["X-Request-ID"] == "req-123"
    assert "X-Response-Time-ms" in resp.headers


async def test_missing_api_key(async_client) -> None:
    resp = await async_client.get("/v1/projects")

    assert resp.status_code == 401
    assert resp.json() == {"error": "http_error", "detail": "Missing API key"}


async def test_invalid_api_key(async_client) -> None:
    resp = await async_client.get("/v1/projects", headers={"X-API-Key": "nope"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid API key"


async def test_create_and_get_project(async_client, api_headers) -> None:
    created = await _create_project(async_client, api_headers)
    assert created["status"] == "created"
    assert created["progress"] == 0.0
    assert created["version"] == 1

    resp = await async_client.get(f"/v1/projects/{created['id']}", headers=api_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Launch ad"

    listing = await async_client.get("/v1/projects", params={"status": "created"}, headers=api_headers)
    assert created["id"] in {p["id"] for p in listing.json()["projects"]}


async def test_unknown_project_returns_error_envelope(async_client, api_headers) -> None:
    resp = await async_client.get(f"/v1/projects/{uuid4()}", headers=api_headers)

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


async def test_approve_outside_review_gate_conflicts(async_client, api_headers) -> None:
    project = await _create_project(async_client, api_headers)

    resp = await async_client.post(f"/v1/projects/{project['id']}/approve", headers=api_headers)

    assert resp.status_code == 409
    assert resp.json()["error"] == "not_at_review_gate"


async def test_retry_requires_failed_project(async_client, api_headers) -> None:
    project = await _create_project(async_client, api_headers)

    resp = await async_client.post(f"/v1/projects/{project['id']}/retry", headers=api_headers)

    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_transition"


async def test_impact_preview(async_client, api_headers) -> None:
    project = await _create_project(async_client, api_headers)

    resp = await async_client.post(
        f"/v1/projects/{project['id']}/impact",
        json={"stage": "directing", "changes": ["unknown_field", "energy_arc"]},
        headers=api_headers,
    )

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["all_affected_stages"] == ["casting", "directing"]
    assert payload["safe"][0]["field"] == "unknown_field"
    assert payload["restart_from"] == "casting"
    assert payload["estimated_cost_usd"] == "5.36"
    assert payload["warning"].startswith("Editing energy_arc will require regenerating")


async def test_impact_preview_validation(async_client, api_headers) -> None:
    project = await _create_project(async_client, api_headers)
    url = f"/v1/projects/{project['id']}/impact"

    unknown = await async_client.post(url, json={"stage": "rendering", "changes": ["x"]}, headers=api_headers)
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "unknown_stage"

    empty = await async_client.post(url, json={"stage": "directing", "changes": []}, headers=api_headers)
    assert empty.status_code == 422


async def test_submit_webhook_and_cost(async_client, api_headers, api_provider) -> None:
    project = await _create_project(async_client, api_headers)
    assets_url = f"/v1/projects/{project['id']}/assets"

    submitted = await async_client.post(
        assets_url, json={"type": "audio", "inputs": {"prompt": "Meet the bottle"}}, headers=api_headers
    )
    assert submitted.status_code == 201
    asset = submitted.json()
    assert asset["status"] == "generating"

    busy = await async_client.post(assets_url, json={"type": "audio"}, headers=api_headers)
    assert busy.status_code == 409
    assert busy.json()["error"] == "slot_busy"
    assert busy.json()["asset_id"] == asset["id"]

    hook = await async_client.post(
        "/v1/webhooks/generation",
        json={"task_id": asset["provider_task_id"], "status": "done", "result": "https://cdn.example/vo.mp3"},
        headers=api_headers,
    )
    assert hook.status_code == 200
    assert hook.json() == {"status": "accepted", "asset_id": asset["id"], "asset_status": "completed"}

    listing = await async_client.get(assets_url, params={"status": "completed"}, headers=api_headers)
    assert [a["url"] for a in listing.json()["assets"]] == ["https://cdn.example/vo.mp3"]

    cost = await async_client.get(f"/v1/projects/{project['id']}/cost", headers=api_headers)
    assert cost.json()["total_usd"] == "0.0500"
    assert [e["reason"] for e in cost.json()["entries"]] == ["generate:audio"]


async def test_cancel_and_regenerate_asset(async_client, api_headers, api_provider) -> None:
    project = await _create_project(async_client, api_headers)
    assets_url = f"/v1/projects/{project['id']}/assets"
    asset = (await async_client.post(assets_url, json={"type": "broll"}, headers=api_headers)).json()

    cancelled = await async_client.post(f"{assets_url}/{asset['id']}/cancel", headers=api_headers)
    assert cancelled.json()["status"] == "cancelled"
    assert api_provider.was_cancelled(asset["provider_task_id"])

    again = await async_client.post(f"{assets_url}/{asset['id']}/cancel", headers=api_headers)
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_asset_state"

    regenerated = await async_client.post(f"{assets_url}/{asset['id']}/regenerate", headers=api_headers)
    assert regenerated.status_code == 200
    body = regenerated.json()
    assert body["failed"] == []
    [fresh] = body["regenerated"]
    assert fresh["status"] == "generating"
    assert fresh["provider_task_id"] != asset["provider_task_id"]


async def test_asset_of_other_project_is_not_found(async_client, api_headers, api_provider) -> None:
    owner = await _create_project(async_client, api_headers, "Owner")
    other = await _create_project(async_client, api_headers, "Other")
    asset = (
        await async_client.post(f"/v1/projects/{owner['id']}/assets", json={"type": "audio"}, headers=api_headers)
    ).json()

    resp = await async_client.post(
        f"/v1/projects/{other['id']}/assets/{asset['id']}/reject", headers=api_headers
    )

    assert resp.status_code == 404


async def test_webhook_for_unknown_task(async_client, api_headers) -> None:
    resp = await async_client.post(
        "/v1/webhooks/generation",
        json={"task_id": "missing-task", "status": "done", "result": "https://cdn.example/x.png"},
        headers=api_headers,
    )

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


async def test_keyframe_edit_requires_review_gate(async_client, api_headers, api_provider) -> None:
    project = await _create_project(async_client, api_headers)
    asset = (
        await async_client.post(
            f"/v1/projects/{project['id']}/assets", json={"type": "keyframe_start"}, headers=api_headers
        )
    ).json()

    resp = await async_client.post(
        f"/v1/projects/{project['id']}/keyframes/{asset['id']}/edit",
        json={"instruction": "brighter"},
        headers=api_headers,
    )

    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_transition"

    preview = await async_client.get(
        f"/v1/projects/{project['id']}/keyframes/{asset['id']}/propagation", headers=api_headers
    )
    assert preview.json() == {"asset_id": asset["id"], "count": 0, "estimated_cost_usd": "0.00"}

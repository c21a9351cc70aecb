"""HTTP API tests for the production and stations routers."""

import pytest
import pytest_asyncio
from httpx import AsyncClient


@pytest_asyncio.fixture
async def dtf_station(client: AsyncClient, actor_headers) -> dict:
    resp = await client.post("/api/stations/", headers=actor_headers, json={
        "code": "DTF-01",
        "name": "DTF Press 1",
        "department": "printing",
        "work_type_codes": ["dtf_printing", "dtg_printing"],
        "capacity_per_day": 300,
    })
    assert resp.status_code == 201
    return resp.json()


@pytest_asyncio.fixture
async def order_job(client: AsyncClient, actor_headers) -> dict:
    resp = await client.post("/api/production/jobs", headers=actor_headers, json={
        "work_type_code": "dtf_printing",
        "ordered_qty": 40,
        "priority": 2,
        "due_date": "2026-03-03",
        "description": "Chest print",
        "order_id": "order-9",
        "order_number": "SO-2026-0009",
        "customer_name": "Acme Apparel",
    })
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.api
@pytest.mark.asyncio
class TestJobLifecycleAPI:

    async def test_create_job(self, order_job):
        assert order_job["job_number"] == "PJ-20260302-0001"
        assert order_job["status"] == "pending"
        assert order_job["created_by"] == "user-floor-01"

    async def test_standalone_job_can_start_queued(self, client, actor_headers):
        resp = await client.post("/api/production/jobs", headers=actor_headers, json={
            "work_type_code": "packing",
            "ordered_qty": 12,
            "customer_name": "Walk-in",
            "queued": True,
        })
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "queued"
        assert data["order_id"] is None
        assert data["customer_name"] == "Walk-in"

    async def test_full_flow_with_rework(self, client, actor_headers, dtf_station, order_job):
        job_id = order_job["id"]
        base = f"/api/production/jobs/{job_id}"

        resp = await client.get(f"{base}/stations")
        assert [s["code"] for s in resp.json()] == ["DTF-01"]

        resp = await client.post(f"{base}/assign", headers=actor_headers,
                                 json={"station_id": dtf_station["id"]})
        assert resp.status_code == 200
        assert resp.json()["status"] == "assigned"

        for step in (
            ("status", {"status": "in_progress"}),
            ("produce", {"qty": 40}),
            ("status", {"status": "qc_check"}),
        ):
            resp = await client.post(f"{base}/{step[0]}", headers=actor_headers, json=step[1])
            assert resp.status_code == 200, resp.json()

        resp = await client.post(f"{base}/qc", headers=actor_headers, json={
            "checkpoints": [{"name": "adhesion", "passed": False, "notes": "peeling"}],
            "overall_passed": False,
            "passed_qty": 30,
            "failed_qty": 10,
        })
        assert resp.status_code == 200
        assert resp.json()["status"] == "qc_failed"

        resp = await client.post(f"{base}/rework", headers=actor_headers,
                                 json={"quantity": 10, "reason": "peeling"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["rework_job"]["status"] == "rework"
        assert body["rework_job"]["original_job_id"] == job_id
        assert body["rework_job"]["description"] == "[REWORK] Chest print"
        assert body["original_job"]["rework_qty"] == 10

        resp = await client.get(base)
        detail = resp.json()
        assert [e["action"] for e in detail["history"]] == [
            "created", "assigned", "status_changed", "produced",
            "status_changed", "qc_failed", "rework_created",
        ]
        assert detail["allowed_transitions"] == ["rework", "cancelled"]
        assert [r["checkpoint_name"] for r in detail["qc_results"]] == ["adhesion"]
        assert detail["score"]["total"] == 50 + 40 + 0 + 5

        resp = await client.get("/api/production/queue/board")
        board = resp.json()
        assert len(board["rework"]) == 2
        assert board["waiting"] == []

        resp = await client.get("/api/production/stats")
        stats = resp.json()
        assert stats["total"] == 2
        assert stats["by_status"]["qc_failed"] == 1
        assert stats["station_workloads"][0]["open_jobs"] == 1

    async def test_queue_orders_by_score_and_hides_closed(self, client, actor_headers):
        created = {}
        for name, priority in (("low", 0), ("emergency", 3), ("rush", 1)):
            resp = await client.post("/api/production/jobs", headers=actor_headers, json={
                "work_type_code": "folding", "ordered_qty": 200, "priority": priority,
                "customer_name": name,
            })
            created[name] = resp.json()["id"]
        await client.post(f"/api/production/jobs/{created['low']}/status",
                          headers=actor_headers, json={"status": "cancelled"})

        resp = await client.get("/api/production/queue")
        assert [e["job"]["customer_name"] for e in resp.json()] == ["emergency", "rush"]
        assert [e["score"] for e in resp.json()] == [100, 25]

        resp = await client.get("/api/production/queue", params={"include_closed": True})
        assert len(resp.json()) == 3

        resp = await client.get("/api/production/queue", params={"status": "cancelled"})
        assert [e["job"]["customer_name"] for e in resp.json()] == ["low"]

    async def test_list_jobs_paginated_and_searchable(self, client, actor_headers, order_job):
        await client.post("/api/production/jobs", headers=actor_headers, json={
            "work_type_code": "sewing", "ordered_qty": 5, "customer_name": "Zed Tailors",
        })
        resp = await client.get("/api/production/jobs", params={"limit": 1})
        data = resp.json()
        assert data["total"] == 2
        assert len(data["items"]) == 1

        resp = await client.get("/api/production/jobs", params={"search": "zed"})
        assert [j["customer_name"] for j in resp.json()["items"]] == ["Zed Tailors"]

    async def test_qr_ticket(self, client, order_job):
        resp = await client.get(f"/api/production/jobs/{order_job['id']}/qr")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")
        assert b"<svg" in resp.content

    async def test_patch_job_reprioritises_and_logs(self, client, actor_headers, order_job):
        base = f"/api/production/jobs/{order_job['id']}"

        resp = await client.patch(base, headers=actor_headers, json={
            "priority": 3, "due_date": None, "notes": "customer escalation",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["priority"] == 3
        assert data["due_date"] is None
        assert data["description"] == "Chest print"

        detail = (await client.get(base)).json()
        assert detail["history"][-1]["action"] == "updated"
        assert detail["history"][-1]["notes"] == "customer escalation"
        assert detail["score"]["tier"] == 100

    async def test_patch_job_validation(self, client, actor_headers, order_job):
        base = f"/api/production/jobs/{order_job['id']}"
        resp = await client.patch(base, headers=actor_headers, json={"priority": 5})
        assert resp.status_code == 422
        resp = await client.patch(base, headers=actor_headers, json={"priority": None})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "PreconditionFailed"
        resp = await client.patch(base, headers=actor_headers, json={"estimated_hours": 0})
        assert resp.status_code == 422

        await client.post(f"{base}/status", headers=actor_headers, json={"status": "cancelled"})
        resp = await client.patch(base, headers=actor_headers, json={"priority": 1})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "InvalidState"

    async def test_progress_and_completion_estimate(self, client, actor_headers, dtf_station):
        resp = await client.post("/api/production/jobs", headers=actor_headers, json={
            "work_type_code": "dtf_printing", "ordered_qty": 40, "estimated_hours": 20,
        })
        assert resp.json()["progress_pct"] == 0
        base = f"/api/production/jobs/{resp.json()['id']}"
        assert (await client.get(base)).json()["estimated_completion"] is None

        await client.post(f"{base}/assign", headers=actor_headers,
                          json={"station_id": dtf_station["id"]})
        await client.post(f"{base}/status", headers=actor_headers, json={"status": "in_progress"})
        resp = await client.post(f"{base}/produce", headers=actor_headers, json={"qty": 10})
        assert resp.json()["progress_pct"] == 25

        detail = (await client.get(base)).json()
        # 30 units left at half an hour each, from 09:00
        assert detail["estimated_completion"] == "2026-03-03T00:00:00"


@pytest.mark.api
@pytest.mark.asyncio
class TestErrorResponses:

    async def test_missing_actor_is_401(self, client):
        resp = await client.post("/api/production/jobs", json={
            "work_type_code": "packing", "ordered_qty": 1,
        })
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "HTTP_401"

    async def test_unknown_job_is_404(self, client):
        resp = await client.get("/api/production/jobs/does-not-exist")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NotFound"

    async def test_invalid_transition_is_409(self, client, actor_headers, order_job):
        resp = await client.post(f"/api/production/jobs/{order_job['id']}/status",
                                 headers=actor_headers, json={"status": "completed"})
        assert resp.status_code == 409
        error = resp.json()["error"]
        assert error["code"] == "InvalidTransition"
        assert error["details"]["allowed"] == ["assigned", "in_progress", "cancelled"]

    async def test_station_required_is_422(self, client, actor_headers, order_job):
        resp = await client.post(f"/api/production/jobs/{order_job['id']}/status",
                                 headers=actor_headers, json={"status": "in_progress"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "PreconditionFailed"

    async def test_qc_outside_qc_check_is_409(self, client, actor_headers, order_job):
        resp = await client.post(f"/api/production/jobs/{order_job['id']}/qc",
                                 headers=actor_headers, json={"overall_passed": True})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "InvalidState"

    async def test_unknown_work_type_rejected(self, client, actor_headers):
        resp = await client.post("/api/production/jobs", headers=actor_headers, json={
            "work_type_code": "screen_printing", "ordered_qty": 10,
        })
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_priority_out_of_range_rejected(self, client, actor_headers):
        resp = await client.post("/api/production/jobs", headers=actor_headers, json={
            "work_type_code": "packing", "ordered_qty": 10, "priority": 4,
        })
        assert resp.status_code == 422

    async def test_overproduction_is_422(self, client, actor_headers):
        resp = await client.post("/api/production/jobs", headers=actor_headers, json={
            "work_type_code": "packing", "ordered_qty": 10,
        })
        base = f"/api/production/jobs/{resp.json()['id']}"
        await client.post(f"{base}/status", headers=actor_headers, json={"status": "in_progress"})
        resp = await client.post(f"{base}/produce", headers=actor_headers, json={"qty": 11})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "InvalidQuantity"


@pytest.mark.api
@pytest.mark.asyncio
class TestStationsAPI:

    async def test_deactivated_station_not_offered(self, client, actor_headers, dtf_station, order_job):
        resp = await client.patch(f"/api/stations/{dtf_station['id']}", headers=actor_headers,
                                  json={"status": "inactive"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "inactive"

        resp = await client.get(f"/api/production/jobs/{order_job['id']}/stations")
        assert resp.json() == []

        resp = await client.post(f"/api/production/jobs/{order_job['id']}/assign",
                                 headers=actor_headers, json={"station_id": dtf_station["id"]})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "IncompatibleStation"

    async def test_bound_job_cannot_start_on_deactivated_station(
        self, client, actor_headers, dtf_station, order_job
    ):
        base = f"/api/production/jobs/{order_job['id']}"
        resp = await client.post(f"{base}/assign", headers=actor_headers,
                                 json={"station_id": dtf_station["id"]})
        assert resp.status_code == 200
        await client.patch(f"/api/stations/{dtf_station['id']}", headers=actor_headers,
                           json={"status": "inactive"})

        resp = await client.post(f"{base}/status", headers=actor_headers,
                                 json={"status": "in_progress"})

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "StationInactive"
        assert (await client.get(base)).json()["status"] == "assigned"

    async def test_update_unknown_station_is_404(self, client, actor_headers):
        resp = await client.patch("/api/stations/nope", headers=actor_headers, json={"name": "X"})
        assert resp.status_code == 404

    async def test_list_stations_by_work_type(self, client, dtf_station):
        resp = await client.get("/api/stations/", params={"work_type_code": "dtg_printing"})
        assert [s["code"] for s in resp.json()] == ["DTF-01"]
        resp = await client.get("/api/stations/", params={"work_type_code": "embroidery"})
        assert resp.json() == []

    async def test_qc_templates(self, client, actor_headers):
        for name, order in (("stitch density", 2), ("thread colour", 1)):
            resp = await client.post("/api/stations/qc-templates", headers=actor_headers, json={
                "work_type_code": "embroidery", "checkpoint_name": name, "sort_order": order,
            })
            assert resp.status_code == 201
        resp = await client.get("/api/stations/qc-templates", params={"work_type_code": "embroidery"})
        assert [t["checkpoint_name"] for t in resp.json()] == ["thread colour", "stitch density"]

    async def test_duplicate_station_code(self, client, actor_headers, dtf_station):
        resp = await client.post("/api/stations/", headers=actor_headers, json={
            "code": "DTF-01", "name": "Clone", "work_type_codes": ["dtf_printing"],
        })
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "DUPLICATE_RECORD"


@pytest.mark.api
@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"

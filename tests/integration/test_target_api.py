"""Integration tests for the target endpoints."""

from uuid import uuid4

import pytest

from tests.factories import make_milestones, make_target_data


async def _create(client, **fields) -> dict:
    response = await client.post("/api/targets", json=make_target_data(**fields))
    assert response.status_code == 201, response.json()
    return response.json()["target"]


class TestTargets:
    @pytest.mark.asyncio
    async def test_create_with_milestones(self, client, student_id):
        target = await _create(client, student_id=student_id, milestones=make_milestones(3))

        assert target["status"] == "active"
        assert target["progress_percentage"] == 0
        assert [m["order_index"] for m in target["milestones"]] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_inline_milestone_cap(self, client, student_id):
        response = await client.post(
            "/api/targets",
            json=make_target_data(student_id=student_id, milestones=make_milestones(21)),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_individual_needs_student(self, client):
        response = await client.post("/api/targets", json=make_target_data())
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_progress_clamped_then_completed(self, client, student_id):
        target = await _create(client, student_id=student_id)
        url = f"/api/targets/{target['id']}/progress"

        response = await client.patch(url, json={"action": "set_progress", "progress_percentage": 150})
        assert response.json()["target"]["progress_percentage"] == 100
        assert response.json()["target"]["status"] == "active"

        response = await client.patch(url, json={"action": "complete"})
        assert response.json()["target"]["status"] == "completed"

        response = await client.patch(url, json={"action": "set_progress", "progress_percentage": 10})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_cancel_without_reason(self, client, student_id):
        target = await _create(client, student_id=student_id)

        response = await client.patch(
            f"/api/targets/{target['id']}/progress", json={"action": "cancel", "reason": ""}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_list_and_detail(self, client, caller, student_ctx, student_id):
        target = await _create(client, student_id=student_id, milestones=make_milestones(2))
        await _create(client, type="school", title="Khatm before Ramadan")

        caller.ctx = student_ctx
        listed = (await client.get("/api/targets")).json()
        assert listed["pagination"]["total"] == 2

        detail = (await client.get(f"/api/targets/{target['id']}")).json()["target"]
        assert [m["title"] for m in detail["milestones"]] == ["Surah 1", "Surah 2"]


class TestMilestones:
    @pytest.mark.asyncio
    async def test_add_and_complete(self, client, student_id):
        target = await _create(client, student_id=student_id, milestones=make_milestones(1))

        response = await client.post(
            f"/api/targets/{target['id']}/milestones", json={"title": "Al-Mulk"}
        )
        assert response.status_code == 201
        milestone = response.json()["milestone"]
        assert milestone["order_index"] == 2

        url = f"/api/targets/milestones/{milestone['id']}/complete"
        response = await client.patch(url)
        assert response.status_code == 200
        assert response.json()["milestone"]["completed"] is True
        assert response.json()["target"]["progress_percentage"] == 50

        detail = (await client.get(f"/api/targets/{target['id']}")).json()["target"]
        assert detail["total_milestones"] == 2
        assert detail["completed_milestones"] == 1
        assert detail["progress_percentage"] == 50

        response = await client.patch(url)
        assert response.status_code == 400
        assert response.json()["code"] == "ALREADY_COMPLETED"

    @pytest.mark.asyncio
    async def test_twenty_first_milestone(self, client, student_id):
        target = await _create(client, student_id=student_id, milestones=make_milestones(20))

        response = await client.post(
            f"/api/targets/{target['id']}/milestones", json={"title": "One too many"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "LIMIT_EXCEEDED"
        detail = (await client.get(f"/api/targets/{target['id']}")).json()["target"]
        assert len(detail["milestones"]) == 20


class TestScope:
    @pytest.mark.asyncio
    async def test_class_target_needs_class_in_school(self, client, target_repo, class_id):
        response = await client.post(
            "/api/targets", json=make_target_data(type="class", class_id=uuid4())
        )
        assert response.status_code == 404
        assert target_repo.rows == {}

        response = await client.post(
            "/api/targets", json=make_target_data(type="class", class_id=class_id)
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_schedule_fields(self, client, student_id):
        target = await _create(client, student_id=student_id)
        assert target["is_overdue"] is False
        assert target["days_remaining"] is None

"""HTTP surface: authentication, status codes, error envelope and notifications."""

import pytest

from conftest import APPROVER, OUTSIDER, R1, R2, SIGNATURE_KEY, SUBMITTER, auth_headers, token_for
from letterflow.db.models import NotificationRow

LETTERS = "/api/v1/letters"


@pytest.fixture
async def letter_id(client):
    response = await client.post(
        LETTERS,
        json={"template_id": "tpl_standard", "form_data": {"recipient": "ACME"}},
        headers=auth_headers(SUBMITTER),
    )
    assert response.status_code == 201
    return response.json()["letter_id"]


async def _approve_through(client, letter_id):
    for user_id in (R1, R2):
        response = await client.post(f"{LETTERS}/{letter_id}/approve-review", json={}, headers=auth_headers(user_id))
        assert response.status_code == 200
    response = await client.post(
        f"{LETTERS}/{letter_id}/final-approve", json={"comment": "ok"}, headers=auth_headers(APPROVER)
    )
    assert response.status_code == 200
    return response.json()


# -- auth ------------------------------------------------------------------------------


async def test_missing_token_is_401(client):
    response = await client.get(LETTERS)
    assert response.status_code == 401
    error = response.json()["error"]
    assert error["code"] == "AUTHENTICATION_ERROR"
    assert error["trace_id"] == response.headers["X-Trace-Id"]


async def test_invalid_token_is_401(client):
    response = await client.get(LETTERS, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "invalid_token"


async def test_refresh_token_is_refused(client):
    token = token_for(SUBMITTER, type="refresh")
    response = await client.get(LETTERS, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "not_access_token"


async def test_trace_id_is_echoed(client):
    response = await client.get("/api/v1/health", headers={"X-Trace-Id": "trc_from_client"})
    assert response.headers["X-Trace-Id"] == "trc_from_client"


# -- letters -----------------------------------------------------------------------------


async def test_create_and_review_over_http(client, letter_id):
    response = await client.get(f"{LETTERS}/pending-my-action", headers=auth_headers(R1))
    assert [item["letter_id"] for item in response.json()] == [letter_id]

    response = await client.post(
        f"{LETTERS}/{letter_id}/approve-review", json={"comment": "fine"}, headers=auth_headers(R1)
    )
    assert response.status_code == 200
    body = response.json()
    assert body["next_action_by_id"] == R2
    assert body["current_step_index"] == 2


async def test_wrong_actor_is_403(client, letter_id):
    response = await client.post(f"{LETTERS}/{letter_id}/approve-review", json={}, headers=auth_headers(R2))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTHORIZATION_ERROR"


async def test_reject_without_reason_is_400(client, letter_id):
    response = await client.post(f"{LETTERS}/{letter_id}/reject-review", json={}, headers=auth_headers(R1))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_decision_on_rejected_letter_is_invalid_state(client, letter_id):
    await client.post(f"{LETTERS}/{letter_id}/reject-review", json={"reason": "no"}, headers=auth_headers(R1))
    response = await client.post(f"{LETTERS}/{letter_id}/approve-review", json={}, headers=auth_headers(R1))
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_STATE"
    assert error["details"] == {"workflow_status": "rejected"}

    response = await client.get(f"{LETTERS}/my-rejected", headers=auth_headers(SUBMITTER))
    assert [item["letter_id"] for item in response.json()] == [letter_id]


async def test_unknown_letter_is_404(client):
    response = await client.get(f"{LETTERS}/ltr_missing", headers=auth_headers(SUBMITTER))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_unknown_body_field_is_422(client):
    response = await client.post(
        LETTERS, json={"template_id": "tpl_standard", "colour": "red"}, headers=auth_headers(SUBMITTER)
    )
    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"][0]["type"] == "extra_forbidden"


async def test_interactive_creation(client):
    response = await client.post(
        f"{LETTERS}/from-pdf-interactive",
        json={
            "original_file_id": "file_source",
            "reviewers": [R1],
            "approver": APPROVER,
            "placements": [
                {"type": "signature", "page_number": 1, "x": 72, "y": 600, "width": 120, "height": 60,
                 "url": SIGNATURE_KEY},
            ],
        },
        headers=auth_headers(SUBMITTER),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["workflow_status"] == "pending_review"
    assert body["placements"][0]["type"] == "signature"


async def test_full_approval_and_public_verification(client, letter_id):
    approved = await _approve_through(client, letter_id)
    assert approved["workflow_status"] == "approved"

    response = await client.get(f"/api/v1/public/letters/{letter_id}")
    assert response.status_code == 200
    assert response.json()["public_link"] == approved["public_link"]

    response = await client.get(f"{LETTERS}/{letter_id}/view-url", headers=auth_headers(OUTSIDER))
    assert response.status_code == 200
    assert response.json()["expires_in"] == 300


async def test_public_endpoint_hides_letters_in_progress(client, letter_id):
    response = await client.get(f"/api/v1/public/letters/{letter_id}")
    assert response.status_code == 404


async def test_comment_and_trash_lifecycle(client, letter_id):
    response = await client.post(
        f"{LETTERS}/{letter_id}/comments", json={"comment": "see page 2"}, headers=auth_headers(R2)
    )
    assert response.status_code == 201
    assert response.json()["action_logs"][-1]["action_type"] == "comment"

    response = await client.delete(f"{LETTERS}/{letter_id}", headers=auth_headers(SUBMITTER))
    assert response.status_code == 200
    response = await client.get(f"{LETTERS}/deleted", headers=auth_headers(SUBMITTER))
    assert [item["letter_id"] for item in response.json()] == [letter_id]

    response = await client.post(f"{LETTERS}/{letter_id}/restore", headers=auth_headers(SUBMITTER))
    assert response.status_code == 200
    assert response.json()["deleted_at"] is None

    await client.delete(f"{LETTERS}/{letter_id}", headers=auth_headers(SUBMITTER))
    response = await client.delete(f"{LETTERS}/{letter_id}/permanent", headers=auth_headers(SUBMITTER))
    assert response.status_code == 204
    response = await client.get(f"{LETTERS}/deleted", headers=auth_headers(SUBMITTER))
    assert response.json() == []


# -- notifications -----------------------------------------------------------------------


@pytest.fixture
async def inbox(session_factory):
    async with session_factory() as session:
        session.add_all([
            NotificationRow(
                notification_id="notif_1", recipient_id=R1, letter_id="ltr_1",
                kind="letter_review_request", title="Letter awaiting your review", body="b1", read=False,
            ),
            NotificationRow(
                notification_id="notif_2", recipient_id=R1, letter_id="ltr_2",
                kind="letter_final_approved", title="Letter approved", body="b2", read=True,
            ),
            NotificationRow(
                notification_id="notif_3", recipient_id=R2, letter_id="ltr_1",
                kind="letter_review_request", title="Letter awaiting your review", body="b3", read=False,
            ),
        ])
        await session.commit()


async def test_list_notifications(client, inbox):
    response = await client.get("/api/v1/notifications", headers=auth_headers(R1))
    assert response.status_code == 200
    assert {n["notification_id"] for n in response.json()} == {"notif_1", "notif_2"}

    response = await client.get("/api/v1/notifications?unread_only=true", headers=auth_headers(R1))
    assert [n["notification_id"] for n in response.json()] == ["notif_1"]


async def test_mark_notification_read(client, inbox):
    response = await client.post("/api/v1/notifications/notif_1/read", headers=auth_headers(R1))
    assert response.json() == {"notification_id": "notif_1", "read": True}

    response = await client.get("/api/v1/notifications?unread_only=true", headers=auth_headers(R1))
    assert response.json() == []


async def test_cannot_mark_someone_elses_notification(client, inbox):
    response = await client.post("/api/v1/notifications/notif_3/read", headers=auth_headers(R1))
    assert response.status_code == 404

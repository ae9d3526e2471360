# mypy: ignore-errors
"""Tests for watch lifecycle endpoints."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import status

from ratwatch.api.v1.dependencies import STALE_TRANSITION_DETAIL
from ratwatch.models import WatchState

from ..conftest import ACCUSED_ID, CHANNEL_ID, GROUP_ID, INITIATOR_ID


def _payload(**overrides):
    deadline = datetime.now(UTC) + timedelta(hours=1)
    payload = {
        "group_id": GROUP_ID,
        "channel_id": CHANNEL_ID,
        "accused_user_id": ACCUSED_ID,
        "initiator_user_id": INITIATOR_ID,
        "origin_message_id": 444444444,
        "deadline": deadline.isoformat(),
        "custom_message": "back by 9 or else",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def created(client):
    response = client.post("/api/v1/watches/", json=_payload())
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def test_create_watch(client, events) -> None:
    """Test putting a user on watch."""
    response = client.post("/api/v1/watches/", json=_payload())

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["state"] == WatchState.PENDING.value
    assert data["accused_user_id"] == ACCUSED_ID
    assert data["custom_message"] == "back by 9 or else"
    assert data["voting_started_at"] is None
    assert [event.event_type for event in events] == ["watch_created"]


def test_create_watch_with_past_deadline(client) -> None:
    past = datetime.now(UTC) - timedelta(minutes=1)
    response = client.post("/api/v1/watches/", json=_payload(deadline=past.isoformat()))

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_create_watch_too_far_ahead(client) -> None:
    far = datetime.now(UTC) + timedelta(hours=25)
    response = client.post("/api/v1/watches/", json=_payload(deadline=far.isoformat()))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "24 hours" in response.json()["detail"]


def test_create_watch_message_too_long(client) -> None:
    response = client.post("/api/v1/watches/", json=_payload(custom_message="x" * 201))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "200 characters" in response.json()["detail"]


def test_create_duplicate_watch_conflicts(client, created) -> None:
    response = client.post("/api/v1/watches/", json=_payload(deadline=created["deadline"]))

    assert response.status_code == status.HTTP_409_CONFLICT


def test_create_watch_in_disabled_group(client) -> None:
    r = client.put(f"/api/v1/groups/{GROUP_ID}/settings", json={"is_enabled": False})
    assert r.status_code == status.HTTP_200_OK

    response = client.post("/api/v1/watches/", json=_payload())

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_get_watch(client, created) -> None:
    response = client.get(f"/api/v1/watches/{created['id']}")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["id"] == created["id"]


def test_get_unknown_watch(client) -> None:
    response = client.get(f"/api/v1/watches/{'0' * 32}")

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_clear_watch(client, created) -> None:
    """The accused checks in before the deadline."""
    response = client.post(
        f"/api/v1/watches/{created['id']}/clear",
        json={"requester_id": ACCUSED_ID},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["state"] == WatchState.CLEARED_EARLY.value
    assert data["cleared_at"] is not None


def test_clear_watch_by_someone_else(client, created) -> None:
    response = client.post(
        f"/api/v1/watches/{created['id']}/clear",
        json={"requester_id": INITIATOR_ID},
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_clear_watch_twice(client, created) -> None:
    url = f"/api/v1/watches/{created['id']}/clear"
    assert client.post(url, json={"requester_id": ACCUSED_ID}).status_code == status.HTTP_200_OK

    response = client.post(url, json={"requester_id": ACCUSED_ID})

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == STALE_TRANSITION_DETAIL


def test_clear_all(client, make_watch) -> None:
    make_watch(deadline=datetime.now(UTC) + timedelta(hours=1))
    make_watch(deadline=datetime.now(UTC) + timedelta(hours=2))
    make_watch(accused_user_id=INITIATOR_ID, deadline=datetime.now(UTC) + timedelta(hours=1))

    response = client.post(
        "/api/v1/watches/clear-all",
        json={"group_id": GROUP_ID, "user_id": ACCUSED_ID},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"cleared": 2}


def test_cancel_watch(client, created) -> None:
    response = client.post(
        f"/api/v1/watches/{created['id']}/cancel",
        json={"reason": "made it home"},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["state"] == WatchState.CANCELLED.value
    assert data["cancel_reason"] == "made it home"


def test_cancel_without_body(client, created) -> None:
    response = client.post(f"/api/v1/watches/{created['id']}/cancel")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["cancel_reason"] is None


def test_cancel_voting_watch_conflicts(client, make_watch) -> None:
    watch = make_watch(state=WatchState.VOTING)

    response = client.post(f"/api/v1/watches/{watch.id}/cancel")

    assert response.status_code == status.HTTP_409_CONFLICT


def test_list_watches(client, make_watch) -> None:
    base = datetime.now(UTC) - timedelta(days=1)
    for offset in range(3):
        make_watch(created_at=base + timedelta(minutes=offset))
    make_watch(
        state=WatchState.GUILTY,
        accused_user_id=INITIATOR_ID,
        custom_message="left the party early",
        created_at=base + timedelta(minutes=10),
    )
    make_watch(group_id=GROUP_ID + 1, created_at=base)

    response = client.get("/api/v1/watches/", params={"group_id": GROUP_ID, "page_size": 2})

    assert response.status_code == status.HTTP_200_OK
    page = response.json()
    assert page["total"] == 4
    assert len(page["items"]) == 2
    assert page["items"][0]["accused_user_id"] == INITIATOR_ID


def test_list_watches_filters(client, make_watch) -> None:
    make_watch()
    make_watch(state=WatchState.GUILTY, custom_message="Left The Party early")
    make_watch(state=WatchState.EXPIRED, accused_user_id=INITIATOR_ID)

    by_state = client.get(
        "/api/v1/watches/",
        params={"group_id": GROUP_ID, "states": ["guilty", "expired"]},
    ).json()
    by_accused = client.get(
        "/api/v1/watches/",
        params={"group_id": GROUP_ID, "accused_user_id": INITIATOR_ID},
    ).json()
    by_keyword = client.get(
        "/api/v1/watches/",
        params={"group_id": GROUP_ID, "keyword": "party"},
    ).json()

    assert by_state["total"] == 2
    assert by_accused["total"] == 1
    assert by_keyword["total"] == 1
    assert by_keyword["items"][0]["state"] == WatchState.GUILTY.value


def test_list_watches_rejects_unknown_state(client) -> None:
    response = client.get("/api/v1/watches/", params={"group_id": GROUP_ID, "states": ["sleeping"]})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_list_watches_created_range(client, make_watch) -> None:
    base = datetime(2026, 3, 1, tzinfo=UTC)
    for day in range(5):
        make_watch(created_at=base + timedelta(days=day))

    response = client.get(
        "/api/v1/watches/",
        params={
            "group_id": GROUP_ID,
            "created_after": (base + timedelta(days=1)).isoformat(),
            "created_before": (base + timedelta(days=3)).isoformat(),
        },
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total"] == 3

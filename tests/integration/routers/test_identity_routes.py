"""
Integration tests for context and attribute management.
"""
import pytest

from consent_service.models.consent import TokenValidity
from tests.fixtures.helpers import CLIENT_ID, bearer


@pytest.fixture
def headers(issuer, seeded_user):
    return bearer(issuer.issue_dashboard_token(seeded_user))


async def test_list_default_contexts(client, headers):
    response = await client.get("/contexts", headers=headers)

    assert response.status_code == 200
    assert [context["name"] for context in response.json()] == [
        "Academic",
        "Personal",
        "Professional",
    ]


async def test_context_crud(client, headers):
    created = await client.post(
        "/contexts", json={"name": "Gaming", "description": "Online games"}, headers=headers
    )
    assert created.status_code == 201
    context_id = created.json()["id"]
    assert context_id.startswith("ctx-")

    updated = await client.put(
        f"/contexts/{context_id}", json={"name": "Games"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["name"] == "Games"
    assert updated.json()["description"] is None

    deleted = await client.delete(f"/contexts/{context_id}", headers=headers)
    assert deleted.status_code == 204
    missing = await client.put(f"/contexts/{context_id}", json={"name": "x"}, headers=headers)
    assert missing.status_code == 404


async def test_deleting_a_context_removes_it_from_attributes(client, headers):
    contexts = (await client.get("/contexts", headers=headers)).json()
    personal_id = next(c["id"] for c in contexts if c["name"] == "Personal")

    await client.delete(f"/contexts/{personal_id}", headers=headers)

    [username] = (await client.get("/attributes", headers=headers)).json()
    assert personal_id not in username["contextIds"]
    assert len(username["contextIds"]) == 2


async def test_attribute_crud(client, headers):
    contexts = (await client.get("/contexts", headers=headers)).json()
    context_ids = [c["id"] for c in contexts if c["name"] != "Academic"]

    created = await client.post(
        "/attributes",
        json={"name": "Email", "value": "alice@example.com", "visible": True, "contextIds": context_ids},
        headers=headers,
    )
    assert created.status_code == 201
    attribute = created.json()
    assert attribute["id"].startswith("attr-")
    assert sorted(attribute["contextIds"]) == sorted(context_ids)

    updated = await client.put(
        f"/attributes/{attribute['id']}",
        json={"name": "Email", "value": "alice@work.example.com", "visible": False},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["visible"] is False
    assert updated.json()["contextIds"] == []

    assert (await client.delete(f"/attributes/{attribute['id']}", headers=headers)).status_code == 204
    assert (await client.delete(f"/attributes/{attribute['id']}", headers=headers)).status_code == 404


async def test_visible_filter(client, headers):
    await client.post(
        "/attributes", json={"name": "Phone", "value": "555-0100", "visible": False}, headers=headers
    )

    everything = (await client.get("/attributes", headers=headers)).json()
    visible = (await client.get("/attributes", params={"visible": "true"}, headers=headers)).json()

    assert {a["name"] for a in everything} == {"Phone", "Username"}
    assert [a["name"] for a in visible] == ["Username"]


async def test_duplicate_attribute_name(client, headers):
    response = await client.post("/attributes", json={"name": "USERNAME"}, headers=headers)

    assert response.status_code == 409
    assert response.json()["detail"] == "Attribute 'USERNAME' already exists."


async def test_renaming_onto_an_existing_name(client, headers):
    phone = (
        await client.post("/attributes", json={"name": "Phone"}, headers=headers)
    ).json()

    response = await client.put(
        f"/attributes/{phone['id']}", json={"name": "Username"}, headers=headers
    )

    assert response.status_code == 409


async def test_identity_routes_require_a_dashboard_session(client, issuer, seeded_user):
    assert (await client.get("/contexts")).status_code == 401
    assert (await client.get("/attributes")).status_code == 401

    consent_headers = bearer(
        issuer.issue_consent_token(seeded_user, CLIENT_ID, TokenValidity.ONE_DAY)
    )
    assert (await client.get("/attributes", headers=consent_headers)).status_code == 403
    assert (
        await client.post("/contexts", json={"name": "Sneaky"}, headers=consent_headers)
    ).status_code == 403

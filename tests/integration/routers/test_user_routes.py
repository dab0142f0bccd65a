"""
Integration tests for the user profile and the attributes a client may read.
"""
from consent_service.models.consent import TokenValidity
from tests.fixtures.helpers import (
    CLIENT_ID,
    OTHER_CLIENT_ID,
    bearer,
    seed_test_user,
    visible_attribute_id,
)


async def grant(client, issuer, user, shared, validity="ONE_DAY"):
    response = await client.post(
        "/consents",
        json={"clientId": CLIENT_ID, "sharedAttributeIds": shared, "validityPolicy": validity},
        headers=bearer(issuer.issue_dashboard_token(user)),
    )
    assert response.status_code == 201
    return response.json()


async def test_me(client, issuer, seeded_user):
    response = await client.get("/users/me", headers=bearer(issuer.issue_dashboard_token(seeded_user)))

    assert response.status_code == 200
    profile = response.json()
    assert profile["id"] == seeded_user.id
    assert profile["username"] == "alice"
    assert profile["roles"] == ["ROLE_USER"]
    assert len(profile["contexts"]) == 3
    assert "passwordHash" not in profile


async def test_me_requires_authentication(client):
    response = await client.get("/users/me")

    assert response.status_code == 401
    assert response.json() == {"detail": "Could not validate credentials"}


async def test_client_reads_the_shared_attributes(client, issuer, seeded_user):
    dashboard = bearer(issuer.issue_dashboard_token(seeded_user))
    await client.post(
        "/attributes", json={"name": "Phone", "value": "555-0100", "visible": True}, headers=dashboard
    )
    username_id = visible_attribute_id(seeded_user)
    await grant(client, issuer, seeded_user, [username_id])
    token = issuer.issue_consent_token(seeded_user, CLIENT_ID, TokenValidity.ONE_DAY)

    response = await client.get(
        f"/users/{seeded_user.id}/attributes",
        params={"clientId": CLIENT_ID},
        headers=bearer(token),
    )

    assert response.status_code == 200
    assert [(a["name"], a["value"]) for a in response.json()] == [("Username", "alice")]


async def test_client_cannot_read_for_another_client(client, issuer, seeded_user):
    await grant(client, issuer, seeded_user, [visible_attribute_id(seeded_user)])
    token = issuer.issue_consent_token(seeded_user, CLIENT_ID, TokenValidity.ONE_DAY)

    response = await client.get(
        f"/users/{seeded_user.id}/attributes",
        params={"clientId": OTHER_CLIENT_ID},
        headers=bearer(token),
    )

    assert response.status_code == 403


async def test_nobody_reads_another_users_attributes(client, issuer, seeded_user, session_factory):
    mallory = await seed_test_user(session_factory, username="mallory")
    await grant(client, issuer, seeded_user, [visible_attribute_id(seeded_user)])

    response = await client.get(
        f"/users/{seeded_user.id}/attributes",
        params={"clientId": CLIENT_ID},
        headers=bearer(issuer.issue_dashboard_token(mallory)),
    )

    assert response.status_code == 403


async def test_no_consent_no_attributes(client, issuer, seeded_user):
    token = issuer.issue_consent_token(seeded_user, CLIENT_ID, TokenValidity.ONE_DAY)

    response = await client.get(
        f"/users/{seeded_user.id}/attributes",
        params={"clientId": CLIENT_ID},
        headers=bearer(token),
    )

    assert response.status_code == 404


async def test_hidden_attributes_are_never_returned(client, issuer, seeded_user):
    username_id = visible_attribute_id(seeded_user)
    await grant(client, issuer, seeded_user, [username_id])
    dashboard = bearer(issuer.issue_dashboard_token(seeded_user))
    await client.put(
        f"/attributes/{username_id}",
        json={"name": "Username", "value": "alice", "visible": False},
        headers=dashboard,
    )

    response = await client.get(
        f"/users/{seeded_user.id}/attributes",
        params={"clientId": CLIENT_ID},
        headers=dashboard,
    )

    assert response.status_code == 200
    assert response.json() == []

from tests.helpers import login, cookie_header


async def test_logout_all_revokes_every_session(client, user):
    sessions = [await login(client, user.email) for _ in range(3)]
    access_token = sessions[-1][0]

    response = await client.post("/auth/logout-all", headers={"Authorization": f"Bearer {access_token}"})

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out from all devices", "revoked_count": 3}
    assert "Max-Age=0" in response.headers["set-cookie"]

    for _, refresh_token in sessions:
        refreshed = await client.post("/auth/refresh", headers=cookie_header(refresh_token))
        assert refreshed.status_code == 401


async def test_logout_all_with_no_active_sessions(client, user):
    access_token, _ = await login(client, user.email)
    headers = {"Authorization": f"Bearer {access_token}"}
    await client.post("/auth/logout-all", headers=headers)

    response = await client.post("/auth/logout-all", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"message": "No active session to logout from", "revoked_count": 0}


async def test_logout_all_leaves_other_users_alone(client, make_user):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    alice_access, _ = await login(client, alice.email)
    _, bob_refresh = await login(client, bob.email)

    await client.post("/auth/logout-all", headers={"Authorization": f"Bearer {alice_access}"})

    response = await client.post("/auth/refresh", headers=cookie_header(bob_refresh))
    assert response.status_code == 200


async def test_logout_all_requires_access_token(client, session):
    response = await client.post("/auth/logout-all")

    assert response.status_code == 401

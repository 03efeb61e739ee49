from .helpers import API


def test_sole_admin_cannot_demote_themself(client, register):
    alice = register("alice")

    response = client.put(f"{API}/users/{alice['user']['id']}/role", json={"role": "member"},
                          headers=alice["headers"])

    assert response.status_code == 400
    assert response.json()["error"] == "last_admin_protected"
    me = client.get(f"{API}/auth/me", headers=alice["headers"]).json()
    assert me["user"]["role"] == "admin"


def test_demotion_allowed_while_another_admin_remains(client, register):
    alice = register("alice")
    bob = register("bob")
    promoted = client.put(f"{API}/users/{bob['user']['id']}/role", json={"role": "admin"},
                          headers=alice["headers"])
    assert promoted.json()["role"] == "admin"

    response = client.put(f"{API}/users/{alice['user']['id']}/role", json={"role": "manager"},
                          headers=bob["headers"])

    assert response.status_code == 200
    assert response.json()["role"] == "manager"


def test_unknown_role_is_rejected(client, register):
    alice = register("alice")

    response = client.put(f"{API}/users/{alice['user']['id']}/role", json={"role": "superuser"},
                          headers=alice["headers"])

    assert response.status_code == 400
    assert response.json()["fields"] == ["role"]


def test_admin_endpoints_are_forbidden_to_members(client, register):
    register("alice")
    bob = register("bob")

    listing = client.get(f"{API}/users", headers=bob["headers"])
    role = client.put(f"{API}/users/{bob['user']['id']}/role", json={"role": "admin"}, headers=bob["headers"])

    assert listing.status_code == 403
    assert listing.json()["error"] == "forbidden"
    assert role.status_code == 403


def test_admin_lists_users_with_counters(client, register, create_project):
    alice = register("alice")
    bob = register("bob")
    create_project(bob["headers"])

    response = client.get(f"{API}/users", headers=alice["headers"])

    assert response.status_code == 200
    counters = {u["username"]: u["owned_projects"] for u in response.json()}
    assert counters == {"alice": 0, "bob": 1}
    assert all("password" not in u for u in response.json())


def test_admin_cannot_deactivate_themself(client, register):
    alice = register("alice")

    response = client.put(f"{API}/users/{alice['user']['id']}/toggle-active", headers=alice["headers"])

    assert response.status_code == 400


def test_deactivated_user_is_locked_out(client, register):
    alice = register("alice")
    bob = register("bob")

    response = client.put(f"{API}/users/{bob['user']['id']}/toggle-active", headers=alice["headers"])

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert client.get(f"{API}/auth/me", headers=bob["headers"]).status_code == 401
    login = client.post(f"{API}/auth/login", json={"username": "bob", "password": "secret123"})
    assert login.status_code == 401

    reactivated = client.put(f"{API}/users/{bob['user']['id']}/toggle-active", headers=alice["headers"])
    assert reactivated.json()["is_active"] is True
    assert client.get(f"{API}/auth/me", headers=bob["headers"]).status_code == 200


def test_admin_resets_password(client, register):
    alice = register("alice")
    bob = register("bob")

    response = client.post(f"{API}/users/{bob['user']['id']}/reset-password",
                           json={"new_password": "brandnew"}, headers=alice["headers"])

    assert response.status_code == 200
    assert client.post(f"{API}/auth/login", json={"username": "bob", "password": "brandnew"}).status_code == 200
    assert client.post(f"{API}/auth/login", json={"username": "bob", "password": "secret123"}).status_code == 401


def test_other_profiles_are_hidden_from_members(client, register):
    alice = register("alice")
    bob = register("bob")

    by_member = client.get(f"{API}/users/{alice['user']['id']}", headers=bob["headers"])
    by_admin = client.get(f"{API}/users/{bob['user']['id']}", headers=alice["headers"])
    own = client.get(f"{API}/users/{bob['user']['id']}", headers=bob["headers"])

    assert by_member.status_code == 404
    assert by_admin.status_code == 200
    assert by_admin.json()["user"]["username"] == "bob"
    assert [a["action"] for a in by_admin.json()["recent_activity"]] == ["user_registered"]
    assert own.status_code == 200


def test_update_profile(client, register):
    register("alice")
    bob = register("bob")
    url = f"{API}/users/{bob['user']['id']}"

    empty = client.put(url, json={}, headers=bob["headers"])
    taken = client.put(url, json={"email": "alice@example.com"}, headers=bob["headers"])
    ok = client.put(url, json={"full_name": "Robert Tester"}, headers=bob["headers"])

    assert empty.status_code == 400
    assert empty.json()["error"] == "no_fields_to_update"
    assert taken.status_code == 409
    assert ok.status_code == 200
    assert ok.json()["full_name"] == "Robert Tester"
    assert ok.json()["email"] == "bob@example.com"


def test_members_cannot_edit_other_profiles(client, register):
    alice = register("alice")
    bob = register("bob")

    response = client.put(f"{API}/users/{alice['user']['id']}", json={"full_name": "Hijacked"},
                          headers=bob["headers"])

    assert response.status_code == 404


def test_available_users_exclude_project_members(client, register, create_project, add_member):
    alice = register("alice")
    bob = register("bob")
    carol = register("carol")
    project = create_project(alice["headers"])
    add_member(alice["headers"], project["id"], bob["user"]["id"])

    everyone = client.get(f"{API}/users/available", headers=alice["headers"]).json()
    candidates = client.get(f"{API}/users/available", params={"project_id": project["id"]},
                            headers=alice["headers"]).json()

    assert {u["username"] for u in everyone} == {"alice", "bob", "carol"}
    assert [u["username"] for u in candidates] == ["carol"]
    assert carol["user"]["id"] == candidates[0]["id"]


def test_update_profile_rejects_nulled_required_fields(client, register):
    register("alice")
    bob = register("bob")
    url = f"{API}/users/{bob['user']['id']}"

    response = client.put(url, json={"full_name": None, "email": None}, headers=bob["headers"])

    assert response.status_code == 400
    assert response.json()["error"] == "validation_failed"
    assert response.json()["fields"] == ["email", "full_name"]
    profile = client.get(url, headers=bob["headers"]).json()
    assert profile["user"]["full_name"] == "Bob Tester"

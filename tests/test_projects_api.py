from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from taskboard.models import ActivityLog, Comment, ProjectMember, Task

from .helpers import API


def test_create_project_makes_owner_a_member(client, register, create_project):
    alice = register("alice")

    project = create_project(alice["headers"], description="Go live", color="#112233")

    assert project["owner_id"] == alice["user"]["id"]
    assert project["status"] == "active"
    listing = client.get(f"{API}/projects", headers=alice["headers"]).json()
    assert len(listing) == 1
    assert listing[0]["user_role"] == "owner"
    assert listing[0]["member_count"] == 1


def test_outsider_gets_not_found_rather_than_forbidden(client, register, create_project):
    alice = register("alice")
    bob = register("bob")
    project = create_project(alice["headers"], name="Launch")

    response = client.get(f"{API}/projects/{project['id']}", headers=bob["headers"])

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
    assert client.get(f"{API}/projects", headers=bob["headers"]).json() == []


def test_hidden_and_missing_projects_look_the_same(client, register, create_project):
    alice = register("alice")
    bob = register("bob")
    project = create_project(alice["headers"])

    hidden = client.put(f"{API}/projects/{project['id']}", json={"name": "x"}, headers=bob["headers"])
    missing = client.put(f"{API}/projects/9999", json={"name": "x"}, headers=bob["headers"])

    assert hidden.status_code == missing.status_code == 404
    assert hidden.json() == missing.json()


def test_member_can_read_project(client, register, create_project, add_member):
    alice = register("alice")
    bob = register("bob")
    project = create_project(alice["headers"])
    add_member(alice["headers"], project["id"], bob["user"]["id"], role="viewer")

    response = client.get(f"{API}/projects/{project['id']}", headers=bob["headers"])

    assert response.status_code == 200
    body = response.json()
    assert body["user_role"] == "viewer"
    assert body["owner"]["username"] == "alice"
    assert {m["username"]: m["project_role"] for m in body["members"]} == {"alice": "owner", "bob": "viewer"}


def test_list_filters_by_status_and_search(client, register, create_project):
    alice = register("alice")
    launch = create_project(alice["headers"], name="Launch", description="Rocket")
    create_project(alice["headers"], name="Payroll")
    client.put(f"{API}/projects/{launch['id']}", json={"status": "archived"}, headers=alice["headers"])

    archived = client.get(f"{API}/projects", params={"status": "archived"}, headers=alice["headers"]).json()
    searched = client.get(f"{API}/projects", params={"search": "rock"}, headers=alice["headers"]).json()

    assert [p["name"] for p in archived] == ["Launch"]
    assert [p["name"] for p in searched] == ["Launch"]


def test_update_requires_owner_or_project_admin(client, register, create_project, add_member):
    alice = register("alice")
    bob = register("bob")
    carol = register("carol")
    project = create_project(alice["headers"])
    add_member(alice["headers"], project["id"], bob["user"]["id"], role="member")
    add_member(alice["headers"], project["id"], carol["user"]["id"], role="admin")

    as_member = client.put(f"{API}/projects/{project['id']}", json={"name": "B"}, headers=bob["headers"])
    as_admin = client.put(f"{API}/projects/{project['id']}", json={"name": "C"}, headers=carol["headers"])

    assert as_member.status_code == 403
    assert as_member.json()["error"] == "forbidden"
    assert as_admin.status_code == 200
    assert as_admin.json()["name"] == "C"


def test_update_without_fields_is_rejected(client, register, create_project):
    alice = register("alice")
    project = create_project(alice["headers"])

    empty = client.put(f"{API}/projects/{project['id']}", json={}, headers=alice["headers"])
    unknown = client.put(f"{API}/projects/{project['id']}", json={"owner_id": "x"}, headers=alice["headers"])

    assert empty.status_code == 400
    assert empty.json()["error"] == "no_fields_to_update"
    assert unknown.status_code == 400


def test_update_rejects_invalid_status(client, register, create_project):
    alice = register("alice")
    project = create_project(alice["headers"])

    response = client.put(f"{API}/projects/{project['id']}", json={"status": "paused"}, headers=alice["headers"])

    assert response.status_code == 400
    assert response.json()["fields"] == ["status"]


def test_only_owner_or_global_admin_may_delete(client, register, create_project, add_member):
    admin = register("admin")
    bob = register("bob")
    carol = register("carol")
    project = create_project(bob["headers"])
    add_member(bob["headers"], project["id"], carol["user"]["id"], role="admin")

    by_project_admin = client.delete(f"{API}/projects/{project['id']}", headers=carol["headers"])
    by_global_admin = client.delete(f"{API}/projects/{project['id']}", headers=admin["headers"])

    assert by_project_admin.status_code == 403
    assert by_global_admin.status_code == 200
    assert client.get(f"{API}/projects/{project['id']}", headers=bob["headers"]).status_code == 404


def test_delete_cascades_to_tasks_comments_and_memberships(
    client, session, register, create_project, create_task, add_member
):
    alice = register("alice")
    bob = register("bob")
    project = create_project(alice["headers"])
    add_member(alice["headers"], project["id"], bob["user"]["id"])
    task = create_task(alice["headers"], project["id"])
    client.post(f"{API}/tasks/{task['id']}/comments", json={"content": "hi"}, headers=bob["headers"])

    response = client.delete(f"{API}/projects/{project['id']}", headers=alice["headers"])

    assert response.status_code == 200
    assert session.exec(select(Task).where(Task.project_id == project["id"])).all() == []
    assert session.exec(select(ProjectMember).where(ProjectMember.project_id == project["id"])).all() == []
    assert session.exec(select(Comment).where(Comment.task_id == task["id"])).all() == []
    assert client.get(f"{API}/tasks/{task['id']}", headers=alice["headers"]).status_code == 404


def test_add_member_rules(client, register, create_project, add_member):
    alice = register("alice")
    bob = register("bob")
    project = create_project(alice["headers"])
    add_member(alice["headers"], project["id"], bob["user"]["id"])

    again = client.post(f"{API}/projects/{project['id']}/members",
                        json={"user_id": bob["user"]["id"]}, headers=alice["headers"])
    owner = client.post(f"{API}/projects/{project['id']}/members",
                        json={"user_id": alice["user"]["id"]}, headers=alice["headers"])
    ghost = client.post(f"{API}/projects/{project['id']}/members",
                        json={"user_id": "no-such-user"}, headers=alice["headers"])
    as_owner_role = client.post(f"{API}/projects/{project['id']}/members",
                                json={"user_id": bob["user"]["id"], "role": "owner"}, headers=alice["headers"])

    assert again.status_code == 409
    assert owner.status_code == 409
    assert ghost.status_code == 404
    assert as_owner_role.status_code == 400


def test_plain_member_cannot_add_members(client, register, create_project, add_member):
    alice = register("alice")
    bob = register("bob")
    carol = register("carol")
    project = create_project(alice["headers"])
    add_member(alice["headers"], project["id"], bob["user"]["id"])

    response = client.post(f"{API}/projects/{project['id']}/members",
                           json={"user_id": carol["user"]["id"]}, headers=bob["headers"])

    assert response.status_code == 403


def test_remove_member_rules(client, register, create_project, add_member):
    alice = register("alice")
    bob = register("bob")
    carol = register("carol")
    project = create_project(alice["headers"])
    add_member(alice["headers"], project["id"], bob["user"]["id"])
    add_member(alice["headers"], project["id"], carol["user"]["id"])
    base = f"{API}/projects/{project['id']}/members"

    other = client.delete(f"{base}/{carol['user']['id']}", headers=bob["headers"])
    owner = client.delete(f"{base}/{alice['user']['id']}", headers=alice["headers"])
    self_removal = client.delete(f"{base}/{bob['user']['id']}", headers=bob["headers"])
    not_member = client.delete(f"{base}/{bob['user']['id']}", headers=alice["headers"])

    assert other.status_code == 403
    assert owner.status_code == 400
    assert self_removal.status_code == 200
    assert not_member.status_code == 404
    assert client.get(f"{API}/projects/{project['id']}", headers=bob["headers"]).status_code == 404


def test_mutations_are_logged_reads_are_not(client, session, register, create_project):
    alice = register("alice")
    project = create_project(alice["headers"])
    client.get(f"{API}/projects/{project['id']}", headers=alice["headers"])
    client.get(f"{API}/projects", headers=alice["headers"])
    client.put(f"{API}/projects/{project['id']}", json={"name": "Renamed"}, headers=alice["headers"])

    entries = session.exec(
        select(ActivityLog).where(ActivityLog.entity_type == "project").order_by(ActivityLog.id)
    ).all()

    assert [e.action for e in entries] == ["project_created", "project_updated"]
    assert entries[0].entity_id == str(project["id"])


def test_failed_activity_write_keeps_the_mutation(client, session, register, monkeypatch):
    alice = register("alice")
    real_commit = Session.commit

    def commit_without_activity(self):
        if any(isinstance(obj, ActivityLog) for obj in self.new):
            raise SQLAlchemyError("activity log unavailable")
        return real_commit(self)

    monkeypatch.setattr(Session, "commit", commit_without_activity)

    response = client.post(f"{API}/projects", json={"name": "Resilient"}, headers=alice["headers"])

    assert response.status_code == 201
    project_id = response.json()["id"]
    assert client.get(f"{API}/projects/{project_id}", headers=alice["headers"]).json()["name"] == "Resilient"
    logged = session.exec(select(ActivityLog).where(ActivityLog.action == "project_created")).all()
    assert logged == []

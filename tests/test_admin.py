from coursepath.crud import user_crud
from coursepath.models import User, UserRole


def test_admin_lists_users_with_filters(client, auth, admin, make_user):
    make_user(name="alice")
    make_user(name="bob")
    auth.user_id = admin.id

    r = client.get("/api/v1/admin/users")
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 3
    assert body["page"] == 1
    assert body["size"] == 20

    r = client.get("/api/v1/admin/users", params={"email_contains": "alice"})
    assert [u["display_name"] for u in r.json()["users"]] == ["alice"]

    r = client.get("/api/v1/admin/users", params={"role": "Admin"})
    assert r.json()["total"] == 1
    assert r.json()["users"][0]["id"] == admin.id

    r = client.get("/api/v1/admin/users", params={"page_offset": 2, "page_size": 2})
    assert r.json()["total"] == 3
    assert len(r.json()["users"]) == 1
    assert r.json()["page"] == 2

    assert client.get("/api/v1/admin/users", params={"role": "Superuser"}).status_code == 400


def test_admin_reads_single_user(client, auth, admin, learner):
    auth.user_id = admin.id

    r = client.get(f"/api/v1/admin/users/{learner.id}")
    assert r.status_code == 200
    assert r.json()["email"] == learner.email
    assert r.json()["role"] == "Learner"

    assert client.get("/api/v1/admin/users/9999").status_code == 404


def test_admin_promotes_learner(client, auth, db, admin, learner):
    auth.user_id = admin.id

    r = client.put(f"/api/v1/admin/users/{learner.id}", json={"role": "Admin", "display_name": "Lead"})
    assert r.status_code == 200
    assert r.json()["role"] == "Admin"
    assert r.json()["display_name"] == "Lead"

    db.expire_all()
    assert db.get(User, learner.id).is_admin is True


def test_role_changes_that_are_refused(client, auth, db, admin, learner):
    auth.user_id = admin.id

    assert client.put(f"/api/v1/admin/users/{learner.id}", json={"role": "Service"}).status_code == 400

    r = client.put(f"/api/v1/admin/users/{admin.id}", json={"role": "Learner"})
    assert r.status_code == 403
    # Renaming oneself is fine
    assert client.put(f"/api/v1/admin/users/{admin.id}", json={"display_name": "Boss"}).status_code == 200

    service = user_crud.get_or_create_service_account(db)
    db.commit()
    r = client.put(f"/api/v1/admin/users/{service.id}", json={"role": "Admin"})
    assert r.status_code == 403

    db.expire_all()
    assert db.get(User, service.id).role == UserRole.SERVICE.value
    assert db.get(User, admin.id).role == UserRole.ADMIN.value


def test_user_management_is_admin_only(client, auth, learner):
    auth.user_id = learner.id
    assert client.get("/api/v1/admin/users").status_code == 403
    assert client.get(f"/api/v1/admin/users/{learner.id}").status_code == 403
    assert client.put(f"/api/v1/admin/users/{learner.id}", json={"role": "Admin"}).status_code == 403

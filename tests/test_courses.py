from sqlalchemy.exc import IntegrityError

from coursepath.crud import course_crud, progress_crud
from coursepath.models import ModuleCompletion, UserCourseProgress
from coursepath.models.course_model import Course, CourseMaterial, CourseModule


def _new_module(title="Getting started", order=1, **extra):
    return {"title": title, "module_order": order, **extra}


def test_admin_creates_course_and_modules(client, auth, admin):
    auth.user_id = admin.id

    r = client.post("/api/v1/courses/", json={"title": "Testing Basics", "description": "Unit tests first"})
    assert r.status_code == 201
    course_id = r.json()["id"]
    assert r.json()["status"] == "active"

    assert client.post(f"/api/v1/courses/{course_id}/modules", json=_new_module("Second step", 2)).status_code == 201
    assert client.post(f"/api/v1/courses/{course_id}/modules", json=_new_module("First step", 1)).status_code == 201

    r = client.get(f"/api/v1/courses/{course_id}")
    assert r.status_code == 200
    assert [m["title"] for m in r.json()["modules"]] == ["First step", "Second step"]
    assert r.json()["module_count"] == 2


def test_duplicate_module_order_conflicts(client, auth, admin, make_course):
    course = make_course(modules=2)
    auth.user_id = admin.id

    r = client.post(f"/api/v1/courses/{course.id}/modules", json=_new_module(order=2))
    assert r.status_code == 409

    r = client.patch(f"/api/v1/courses/{course.id}/modules/{course.modules[0].id}", json={"module_order": 2})
    assert r.status_code == 409


def test_learner_cannot_manage_courses(client, auth, learner, make_course):
    course = make_course(modules=1)
    auth.user_id = learner.id

    assert client.post("/api/v1/courses/", json={"title": "Not allowed"}).status_code == 403
    assert client.post(f"/api/v1/courses/{course.id}/archive").status_code == 403
    assert client.post(f"/api/v1/courses/{course.id}/modules", json=_new_module(order=5)).status_code == 403


def test_unauthenticated_request_is_rejected(client, make_course):
    course = make_course(modules=1)
    assert client.post(f"/api/v1/courses/{course.id}/enroll").status_code == 401


def test_archive_hides_course_from_learners(client, auth, admin, learner, make_course):
    course = make_course(modules=1)
    auth.user_id = admin.id
    r = client.post(f"/api/v1/courses/{course.id}/archive")
    assert r.status_code == 200
    assert r.json()["status"] == "archived"
    assert r.json()["archived_at"] is not None
    assert client.post(f"/api/v1/courses/{course.id}/archive").status_code == 409
    assert [c["id"] for c in client.get("/api/v1/courses/archived").json()] == [course.id]

    auth.user_id = learner.id
    assert client.get(f"/api/v1/courses/{course.id}").status_code == 404
    assert client.post(f"/api/v1/courses/{course.id}/enroll").status_code == 404
    assert client.get(f"/api/v1/courses/{course.id}/modules/{course.modules[0].id}").status_code == 404
    assert client.get("/api/v1/courses/").json() == []


def test_restore_keeps_learner_progress(client, auth, db, admin, learner, make_course):
    course = make_course(modules=2)
    auth.user_id = learner.id
    client.post(f"/api/v1/courses/{course.id}/modules/{course.modules[0].id}/progress", json={"progress": 100})

    auth.user_id = admin.id
    client.post(f"/api/v1/courses/{course.id}/archive")
    r = client.post(f"/api/v1/courses/{course.id}/restore")
    assert r.status_code == 200
    assert r.json()["status"] == "active"
    assert client.post(f"/api/v1/courses/{course.id}/restore").status_code == 409

    auth.user_id = learner.id
    assert client.get(f"/api/v1/user/courses/{course.id}/progress").json()["progress"] == 50


def test_purge_requires_archived_course(client, auth, db, admin, learner, make_course):
    course = make_course(modules=2, questions={0: 1})
    auth.user_id = learner.id
    client.post(f"/api/v1/courses/{course.id}/modules/{course.modules[0].id}/progress", json={"progress": 100})

    auth.user_id = admin.id
    assert client.delete(f"/api/v1/courses/{course.id}").status_code == 409

    client.post(f"/api/v1/courses/{course.id}/archive")
    assert client.delete(f"/api/v1/courses/{course.id}").status_code == 204
    assert client.get(f"/api/v1/courses/{course.id}").status_code == 404

    db.expire_all()
    assert db.query(Course).count() == 0
    assert db.query(CourseModule).count() == 0
    assert db.query(UserCourseProgress).count() == 0
    assert db.query(ModuleCompletion).count() == 0


def test_adding_module_lowers_existing_progress(client, auth, db, admin, learner, make_course):
    course = make_course(modules=2)
    auth.user_id = learner.id
    for module in course.modules:
        client.post(f"/api/v1/courses/{course.id}/modules/{module.id}/progress", json={"progress": 100})

    auth.user_id = admin.id
    assert client.post(f"/api/v1/courses/{course.id}/modules", json=_new_module("Bonus module", 3)).status_code == 201

    db.expire_all()
    enrollment = progress_crud.get_enrollment(db, learner.id, course.id)
    assert enrollment.progress == 67
    assert enrollment.completed is False


def test_deleting_module_reaggregates_and_clears_current_module(client, auth, db, admin, learner, make_course):
    course = make_course(modules=2)
    first, second = course.modules
    auth.user_id = learner.id
    client.post(f"/api/v1/courses/{course.id}/modules/{first.id}/progress", json={"progress": 100})
    client.post(f"/api/v1/courses/{course.id}/modules/{second.id}/start")

    auth.user_id = admin.id
    assert client.delete(f"/api/v1/courses/{course.id}/modules/{second.id}").status_code == 204

    db.expire_all()
    enrollment = progress_crud.get_enrollment(db, learner.id, course.id)
    assert enrollment.current_module_id is None
    assert enrollment.progress == 100
    assert enrollment.completed is True


def test_module_path_must_match_course(client, auth, admin, make_course):
    course = make_course(title="First course", modules=1)
    other = make_course(title="Second course", modules=1)
    auth.user_id = admin.id

    r = client.patch(f"/api/v1/courses/{course.id}/modules/{other.modules[0].id}", json={"title": "Renamed module"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Course or module not found"


def test_null_for_required_fields_is_rejected(client, auth, db, admin, make_course):
    course = make_course(modules=1)
    module = course.modules[0]
    auth.user_id = admin.id

    r = client.patch(f"/api/v1/courses/{course.id}", json={"title": None})
    assert r.status_code == 400
    assert r.json()["detail"] == "Validation error"

    module_url = f"/api/v1/courses/{course.id}/modules/{module.id}"
    assert client.patch(module_url, json={"title": None}).status_code == 400
    assert client.patch(module_url, json={"module_order": None}).status_code == 400

    # Nullable fields can still be cleared
    r = client.patch(f"/api/v1/courses/{course.id}", json={"description": None})
    assert r.status_code == 200
    assert r.json()["description"] is None
    assert r.json()["title"] == "Quality Assurance 101"

    db.expire_all()
    assert db.get(CourseModule, module.id).title == "Module 1"


def test_only_order_violations_become_conflicts():
    order_clash = IntegrityError(
        "UPDATE course_modules", {},
        Exception("UNIQUE constraint failed: course_modules.course_id, course_modules.module_order"),
    )
    named_clash = IntegrityError(
        "UPDATE course_modules", {},
        Exception('duplicate key value violates unique constraint "uq_course_module_order"'),
    )
    missing_title = IntegrityError(
        "UPDATE course_modules", {}, Exception("NOT NULL constraint failed: course_modules.title"),
    )
    assert course_crud._is_module_order_violation(order_clash) is True
    assert course_crud._is_module_order_violation(named_clash) is True
    assert course_crud._is_module_order_violation(missing_title) is False


def test_course_materials(client, auth, db, admin, learner, make_course):
    course = make_course(modules=1)
    url = f"/api/v1/courses/{course.id}/materials"
    material = {"title": "Slides", "material_type": "slides", "url": "https://cdn.example.com/s.pdf", "file_size": "2.4 MB"}

    auth.user_id = learner.id
    assert client.post(url, json=material).status_code == 403

    auth.user_id = admin.id
    r = client.post(url, json=material)
    assert r.status_code == 201
    material_id = r.json()["id"]
    assert r.json()["course_id"] == course.id
    assert client.post(url, json={"title": "No url", "material_type": "link"}).status_code == 400

    r = client.patch(f"{url}/{material_id}", json={"title": "Week 1 slides"})
    assert r.status_code == 200
    assert r.json()["url"] == "https://cdn.example.com/s.pdf"
    assert client.patch(f"{url}/{material_id}", json={"url": None}).status_code == 400

    auth.user_id = learner.id
    r = client.get(url)
    assert r.status_code == 200
    assert [m["title"] for m in r.json()] == ["Week 1 slides"]

    other = make_course(title="Other course", modules=1)
    auth.user_id = admin.id
    assert client.delete(f"/api/v1/courses/{other.id}/materials/{material_id}").status_code == 404
    assert client.delete(f"{url}/{material_id}").status_code == 204
    assert client.get(url).json() == []


def test_materials_of_archived_course(client, auth, db, admin, learner, make_course):
    course = make_course(modules=1)
    url = f"/api/v1/courses/{course.id}/materials"
    auth.user_id = admin.id
    client.post(url, json={"title": "Handout", "material_type": "pdf", "url": "https://cdn.example.com/h.pdf"})
    client.post(f"/api/v1/courses/{course.id}/archive")

    auth.user_id = learner.id
    assert client.get(url).status_code == 404

    auth.user_id = admin.id
    assert client.delete(f"/api/v1/courses/{course.id}").status_code == 204
    db.expire_all()
    assert db.query(CourseMaterial).count() == 0

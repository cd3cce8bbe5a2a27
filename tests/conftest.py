# tests/conftest.py
"""
Shared fixtures: an app on in-memory SQLite, a small seeded school, auth
headers for any profile, and a fake completion client installed in
app.extensions so no test ever reaches the network.
"""

from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

from campus import create_app
from campus.config import Config
from campus.extensions import db
from campus.models import (
    Role, Profile, ParentStudent, School, SchoolClass, Enrollment, AttendanceRecord,
)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = "testing-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = "testing-secret-key-with-enough-length-for-hs256"
    JWT_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    OPENAI_API_KEY = None


class FakeCompleter:
    """Records every call; raises `error` if set, else returns `reply`."""

    def __init__(self, reply="Attendance is steady; keep it up.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, system_prompt, user_message, temperature=0.7, max_tokens=500):
        self.calls.append({
            "system": system_prompt,
            "user": user_message,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def app(tmp_path):
    class _Config(TestingConfig):
        AUDIT_LOG_FILE = str(tmp_path / "audit.log")

    app = create_app(_Config)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def completer(app):
    fake = FakeCompleter()
    app.extensions["completion"] = fake
    return fake


def make_profile(username, role, first_name=None, last_name="Tester"):
    profile = Profile(
        username=username,
        first_name=first_name or username.capitalize(),
        last_name=last_name,
        role=role,
    )
    profile.set_password("secret-pass")
    db.session.add(profile)
    db.session.flush()
    return profile


@pytest.fixture
def school(app):
    """
    One school with:
      - teacher `teacher` teaching `math` (students s1, s2, s3 enrolled)
      - teacher `other_teacher` teaching `science` (student s4 enrolled)
      - `parent` linked to s1, `parent2` linked to s1, `lonely_parent` with no children
      - an `admin`
    """
    sch = School(name="Woodlands Primary School", address="123 Main St")
    db.session.add(sch)
    db.session.flush()

    teacher = make_profile("teacher", Role.teacher)
    other_teacher = make_profile("other_teacher", Role.teacher)
    students = [make_profile(f"s{i}", Role.student) for i in range(1, 5)]
    parent = make_profile("parent", Role.parent)
    parent2 = make_profile("parent2", Role.parent)
    lonely_parent = make_profile("lonely_parent", Role.parent)
    admin = make_profile("admin", Role.admin)

    math = SchoolClass(name="Mathematics", grade="5", section="A", school_id=sch.id, teacher_id=teacher.id)
    science = SchoolClass(name="Science", grade="5", section="B", school_id=sch.id, teacher_id=other_teacher.id)
    db.session.add_all([math, science])
    db.session.flush()

    for student in students[:3]:
        db.session.add(Enrollment(student_id=student.id, class_id=math.id))
    db.session.add(Enrollment(student_id=students[3].id, class_id=science.id))
    db.session.add(ParentStudent(parent_id=parent.id, student_id=students[0].id, relation="mother"))
    db.session.add(ParentStudent(parent_id=parent2.id, student_id=students[0].id, relation="father"))
    db.session.commit()

    return SimpleNamespace(
        school=sch, teacher=teacher, other_teacher=other_teacher, students=students,
        parent=parent, parent2=parent2, lonely_parent=lonely_parent, admin=admin,
        math=math, science=science,
    )


@pytest.fixture
def auth_headers(app):
    def _headers(profile):
        token = create_access_token(identity=str(profile.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def add_record(app):
    """Inserts an attendance row directly, bypassing the marking rules."""
    def _add(student, school_class, day, status="present"):
        record = AttendanceRecord(
            student_id=student.id, class_id=school_class.id, date=day, status=status,
        )
        db.session.add(record)
        db.session.commit()
        return record
    return _add

import pytest

from campus import create_app
from campus.extensions import db
from campus.models import AuditLog
from tests.conftest import TestingConfig


@pytest.fixture
def limited_client(tmp_path):
    class _Config(TestingConfig):
        RATELIMIT_ENABLED = True
        RATELIMIT_STORAGE_URI = "memory://"
        AUDIT_LOG_FILE = str(tmp_path / "audit.log")

    app = create_app(_Config)
    with app.app_context():
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def test_login_breach_is_audited_and_refused(limited_client):
    credentials = {"username": "nobody", "password": "wrong-pass"}
    for _ in range(5):
        assert limited_client.post("/auth/login", json=credentials).status_code == 401

    resp = limited_client.post("/auth/login", json=credentials)

    assert resp.status_code == 429
    assert resp.get_json() == {"error": "Rate limit exceeded. Please slow down."}
    rows = AuditLog.query.all()
    assert len(rows) == 1
    assert rows[0].action.startswith("RATE_LIMIT_EXCEEDED: POST /auth/login")
    assert rows[0].profile_id is None
    assert rows[0].ip_address == "127.0.0.1"

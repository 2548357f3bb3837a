import pathlib
import sys

import pytest
from PIL import Image

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certsend.app import create_app, db
from certsend.models import User

CSRF_TOKEN = "test-csrf-token"
BASE_URL = "http://certs.test"


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


def make_template(path, size=(800, 566), color=(255, 255, 255)):
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="PNG")
    return path


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SITE_ROOT", str(tmp_path))
    monkeypatch.setenv("FLASK_SKIP_SEED", "1")
    make_template(tmp_path / "templates" / "certificate.png")
    application = create_app(
        {
            "TESTING": True,
            "PUBLIC_BASE_URL": BASE_URL,
            "DISPATCH_DELAY_SECONDS": 0,
            "CERT_PRODUCER": "viewer",
            "VERIFY_LINKS": False,
        }
    )
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def operator(app):
    user = User(email="operator@example.com", full_name="Operator")
    user.set_password("pw")
    db.session.add(user)
    db.session.commit()
    return user


def login(client, user_id):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["_csrf_token"] = CSRF_TOKEN


@pytest.fixture
def auth_client(client, operator):
    login(client, operator.id)
    return client

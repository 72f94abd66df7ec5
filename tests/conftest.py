import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlsplit

# Environment must be in place before the app (and its DBStorage) is imported
_test_tmp_dir = tempfile.mkdtemp(prefix="token_auth_test_")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_test_tmp_dir}/test.db")
os.environ.setdefault("ACCESS_SECRET", "test-access-secret-do-not-use-in-production")
os.environ.setdefault("REFRESH_SECRET", "test-refresh-secret-do-not-use-in-production")

import pytest  # noqa: E402
import requests  # noqa: E402
from requests.adapters import BaseAdapter  # noqa: E402
from requests.structures import CaseInsensitiveDict  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api import create_app  # noqa: E402
from models import storage  # noqa: E402
from models.user import User  # noqa: E402
from models.refresh_token import RefreshToken  # noqa: E402
from utils.security import TokenService  # noqa: E402

BASE_URL = "http://auth.test"


@pytest.fixture
def app():
    return create_app("testing")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    session = storage.get_session()
    session.query(RefreshToken).delete()
    session.query(User).delete()
    storage.save()
    storage.close()


@pytest.fixture
def credentials():
    return {"username": "alice", "password": "Str0ng!Pw"}


@pytest.fixture
def registered(client, credentials):
    resp = client.post("/api/register", json=credentials)
    assert resp.status_code == 201
    return credentials


@pytest.fixture
def tokens(client, registered):
    resp = client.post("/api/login", json=registered)
    assert resp.status_code == 200
    return resp.get_json()


@pytest.fixture
def expired_access_token(app):
    """Mint an already-expired access token signed with the app's real secret."""
    def mint(user_id: str) -> str:
        service = TokenService(
            app.config["ACCESS_SECRET"],
            app.config["REFRESH_SECRET"],
            access_expires=timedelta(seconds=-10),
            issuer=app.config["JWT_ISSUER"],
        )
        return service.issue_access_token(user_id)

    return mint


class FlaskAdapter(BaseAdapter):
    """requests transport that hands every request to a Flask test client."""

    def __init__(self, flask_client):
        super().__init__()
        self.flask_client = flask_client
        self.calls = []

    def send(self, request, **kwargs):
        url = urlsplit(request.url)
        self.calls.append((request.method, url.path))
        headers = {
            k: v for k, v in request.headers.items()
            if k.lower() not in ("content-length", "content-type")
        }
        resp = self.flask_client.open(
            url.path,
            method=request.method,
            headers=headers,
            data=request.body,
            content_type=request.headers.get("Content-Type"),
        )
        out = requests.Response()
        out.status_code = resp.status_code
        out.reason = resp.status.split(" ", 1)[-1]
        out._content = resp.get_data()
        out.headers = CaseInsensitiveDict(resp.headers)
        out.encoding = "utf-8"
        out.url = request.url
        out.request = request
        return out

    def close(self):
        pass


@pytest.fixture
def flask_adapter(client):
    return FlaskAdapter(client)


@pytest.fixture
def http(flask_adapter):
    session = requests.Session()
    session.mount(BASE_URL, flask_adapter)
    return session

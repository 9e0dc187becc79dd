import struct
import zipfile

import pytest
from fastapi.testclient import TestClient

from backend.advisor import db, routes
from backend.advisor.config import Settings
from backend.advisor.gateway import CompletionResult, ModelGateway
from backend.advisor.main import app


class StaticProvider:
    """Provider double that records prompts and returns a fixed result."""

    def __init__(self, text=None, error="provider down", name="static"):
        self.name = name
        self.text = text
        self.error = error
        self.prompts = []

    def attempt(self, prompt):
        self.prompts.append(prompt)
        if self.text is not None:
            return CompletionResult(text=self.text, model="static-model")
        return CompletionResult(error=self.error)


def write_zip(path, entries):
    with zipfile.ZipFile(path, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return path


def write_corrupt_deflated_zip(path, entry, content):
    """Archive whose single deflated entry has an invalid first block."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(entry, content)
    data = bytearray(path.read_bytes())
    name_len, extra_len = struct.unpack("<HH", data[26:30])
    # BFINAL=1, BTYPE=11 (reserved)
    data[30 + name_len + extra_len] = 0x07
    path.write_bytes(bytes(data))
    return path


@pytest.fixture
def db_engine(tmp_path, monkeypatch):
    engine = db.make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setattr(db, "engine", engine)
    db.init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def settings(tmp_path, monkeypatch):
    s = Settings(uploads_dir=str(tmp_path / "uploads"))
    monkeypatch.setattr(routes, "get_settings", lambda: s)
    return s


@pytest.fixture
def gateway():
    return ModelGateway([])


@pytest.fixture
def client(db_engine, settings, gateway):
    app.dependency_overrides[routes.get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, username="anna", password="secret1", business_name="Sunrise Bakery", specialization="catering"):
    resp = client.post(
        "/api/register",
        json={
            "username": username,
            "password": password,
            "business_name": business_name,
            "specialization": specialization,
        },
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}

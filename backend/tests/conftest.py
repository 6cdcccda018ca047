import os
import tempfile
from pathlib import Path

import pytest

# Point the app at throwaway locations before it is imported.
_TMP = Path(tempfile.mkdtemp(prefix="radio-catalog-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_DIR"] = str(_TMP / "storage")
os.environ["UPLOADS_DIR"] = str(_TMP / "uploads")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ.pop("DOWNLOAD_ALLOWED_HOSTS", None)
(_TMP / "uploads").mkdir(parents=True, exist_ok=True)

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, select  # noqa: E402

from radio_catalog import main  # noqa: E402
from radio_catalog.database import engine  # noqa: E402
from radio_catalog.models import Program  # noqa: E402


@pytest.fixture(autouse=True)
def clean_catalog():
    """Start every test with an empty audio_entries table."""
    with Session(engine) as session:
        for program in session.exec(select(Program)).all():
            session.delete(program)
        session.commit()
    yield


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def storage():
    return main._storage


@pytest.fixture
def uploads_dir():
    return _TMP / "uploads"


@pytest.fixture
def create_program(client):
    """POST a program and return its id."""
    def _create(name="Morning Farm Hour", date="2024-03-01", category="Paddy", description="Soil preparation tips", audio=None):
        data = {"programName": name, "date": date, "category": category, "description": description}
        files = {"audioFile": audio} if audio else None
        r = client.post("/api/audio", data=data, files=files)
        assert r.status_code == 201, r.text
        return r.json()["id"]
    return _create

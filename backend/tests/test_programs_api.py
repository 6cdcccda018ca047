from radio_catalog import main
from radio_catalog.config import settings
from radio_catalog.storage import audio_key


def _mp3(name="episode.mp3", payload=b"ID3fake-audio-bytes"):
    return (name, payload, "audio/mpeg")


def test_created_entry_appears_in_listing(client, create_program):
    assert client.get("/api/audio").json() == []
    pid = create_program(name="Coconut Care", date="2024-05-10", category="Coconut", description="Pest control")
    rows = client.get("/api/audio").json()
    assert len(rows) == 1
    row = rows[0]
    assert row["id"] == pid
    assert row["program_name"] == "Coconut Care"
    assert row["date"] == "2024-05-10"
    assert row["category"] == "Coconut"
    assert row["audio_url"] is None
    assert row["file_name"] is None


def test_listing_is_newest_date_first(client, create_program):
    create_program(name="old", date="2023-01-01")
    create_program(name="new", date="2024-06-01")
    create_program(name="mid", date="2023-08-15")
    names = [r["program_name"] for r in client.get("/api/audio").json()]
    assert names == ["new", "mid", "old"]


def test_create_with_audio_stores_blob(client, create_program, storage):
    pid = create_program(audio=_mp3("Farm Talk.mp3", b"abc123"))
    row = client.get(f"/api/audio/{pid}").json()
    assert row["file_name"].endswith("-Farm Talk.mp3")
    assert storage.exists(audio_key(row["file_name"]))
    assert row["audio_url"] == storage.url_for(audio_key(row["file_name"]))
    # the local store is served by the app itself
    media = client.get(row["audio_url"])
    assert media.status_code == 200
    assert media.content == b"abc123"


def test_create_rejects_missing_fields(client):
    r = client.post("/api/audio", data={"programName": "x", "date": "2024-01-01", "category": "c"})
    assert r.status_code == 400
    assert "description" in r.json()["error"]


def test_create_rejects_bad_date(client):
    data = {"programName": "x", "date": "yesterday", "category": "c", "description": "d"}
    r = client.post("/api/audio", data=data)
    assert r.status_code == 400
    assert "date" in r.json()["error"]


def test_create_date_must_be_exactly_iso(client):
    data = {"programName": "x", "date": "2024-01-01garbage", "category": "c", "description": "d"}
    assert client.post("/api/audio", data=data).status_code == 400
    data["date"] = "2024-01-01T10:00:00"
    r = client.post("/api/audio", data=data)
    assert r.status_code == 201
    assert client.get(f"/api/audio/{r.json()['id']}").json()["date"] == "2024-01-01"


def test_create_rejects_non_audio_upload(client, storage):
    data = {"programName": "x", "date": "2024-01-01", "category": "c", "description": "d"}
    r = client.post("/api/audio", data=data, files={"audioFile": ("notes.txt", b"hello", "text/plain")})
    assert r.status_code == 415
    assert client.get("/api/audio").json() == []


def test_create_rejects_oversized_upload(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 8)
    data = {"programName": "x", "date": "2024-01-01", "category": "c", "description": "d"}
    r = client.post("/api/audio", data=data, files={"audioFile": _mp3(payload=b"0123456789")})
    assert r.status_code == 413
    assert client.get("/api/audio").json() == []


def test_storage_failure_returns_500_without_row(client, monkeypatch):
    def boom(*_args, **_kwargs):
        raise RuntimeError("bucket unavailable")

    monkeypatch.setattr(main._storage, "upload", boom)
    data = {"programName": "x", "date": "2024-01-01", "category": "c", "description": "d"}
    r = client.post("/api/audio", data=data, files={"audioFile": _mp3()})
    assert r.status_code == 500
    assert r.json()["error"] == "Error processing audio entry: bucket unavailable"
    assert client.get("/api/audio").json() == []


def test_update_changes_visible_fields(client, create_program):
    pid = create_program(audio=_mp3())
    before = client.get(f"/api/audio/{pid}").json()
    data = {"id": str(pid), "programName": "Renamed", "date": "2024-04-02", "category": "Vegetables", "description": "New text"}
    r = client.put("/api/audio", data=data)
    assert r.status_code == 200
    assert r.json()["message"] == "Audio entry updated successfully"
    after = client.get(f"/api/audio/{pid}").json()
    assert after["program_name"] == "Renamed"
    assert after["date"] == "2024-04-02"
    assert after["category"] == "Vegetables"
    assert after["description"] == "New text"
    # no new file: the stored audio is untouched
    assert after["file_name"] == before["file_name"]
    assert after["audio_url"] == before["audio_url"]


def test_update_with_new_file_replaces_blob(client, create_program, storage):
    pid = create_program(audio=_mp3("first.mp3", b"first"))
    old = client.get(f"/api/audio/{pid}").json()
    data = {"id": str(pid), "programName": "p", "date": "2024-01-01", "category": "c", "description": "d"}
    r = client.put("/api/audio", data=data, files={"audioFile": _mp3("second.mp3", b"second")})
    assert r.status_code == 200
    new = client.get(f"/api/audio/{pid}").json()
    assert new["file_name"].endswith("-second.mp3")
    assert storage.read(audio_key(new["file_name"])) == b"second"
    assert not storage.exists(audio_key(old["file_name"]))


def test_update_survives_failed_old_blob_delete(client, create_program, storage, monkeypatch):
    pid = create_program(audio=_mp3("first.mp3", b"first"))

    def boom(_key):
        raise OSError("disk gone")

    monkeypatch.setattr(main._storage, "delete", boom)
    data = {"id": str(pid), "programName": "p", "date": "2024-01-01", "category": "c", "description": "d"}
    r = client.put("/api/audio", data=data, files={"audioFile": _mp3("second.mp3", b"second")})
    assert r.status_code == 200
    assert client.get(f"/api/audio/{pid}").json()["file_name"].endswith("-second.mp3")


def test_update_unknown_id_is_404_and_stores_nothing(client, storage):
    data = {"id": "9999", "programName": "p", "date": "2024-01-01", "category": "c", "description": "d"}
    r = client.put("/api/audio", data=data, files={"audioFile": _mp3("ghost.mp3")})
    assert r.status_code == 404
    assert not any(p.name.endswith("-ghost.mp3") for p in storage.root.rglob("*"))


def test_update_requires_integer_id(client):
    data = {"id": "abc", "programName": "p", "date": "2024-01-01", "category": "c", "description": "d"}
    r = client.put("/api/audio", data=data)
    assert r.status_code == 400


def test_delete_removes_entry_and_blob(client, create_program, storage):
    pid = create_program(audio=_mp3())
    file_name = client.get(f"/api/audio/{pid}").json()["file_name"]
    r = client.delete("/api/audio", params={"id": pid})
    assert r.status_code == 200
    assert r.json()["message"] == "Audio entry deleted successfully"
    assert client.get("/api/audio").json() == []
    assert client.get(f"/api/audio/{pid}").status_code == 404
    assert not storage.exists(audio_key(file_name))


def test_delete_survives_failed_blob_delete(client, create_program, storage, monkeypatch):
    pid = create_program(audio=_mp3("stuck.mp3", b"stuck"))
    file_name = client.get(f"/api/audio/{pid}").json()["file_name"]

    def boom(_key):
        raise OSError("disk gone")

    monkeypatch.setattr(main._storage, "delete", boom)
    r = client.delete("/api/audio", params={"id": pid})
    assert r.status_code == 200
    assert client.get(f"/api/audio/{pid}").status_code == 404
    # the blob is left behind as an orphan
    assert storage.exists(audio_key(file_name))


def test_delete_unknown_and_missing_id(client):
    assert client.delete("/api/audio", params={"id": 424242}).status_code == 404
    assert client.delete("/api/audio").status_code == 400


def test_get_single_program_not_found(client):
    r = client.get("/api/audio/31337")
    assert r.status_code == 404
    assert r.json()["error"] == "Program not found"


def test_share_link(client, create_program):
    pid = create_program(name="Tea Talk")
    r = client.get(f"/api/audio/{pid}/share")
    assert r.status_code == 200
    body = r.json()
    assert body["url"] == f"{settings.PUBLIC_BASE_URL}/program/{pid}"
    assert body["title"] == f"Listen to Tea Talk on {settings.SITE_TITLE}"
    assert client.get("/api/audio/777777/share").status_code == 404


def _broken(*_a, **_kw):
    raise RuntimeError("database unavailable")


def test_read_endpoints_report_database_errors_as_json(client, monkeypatch):
    monkeypatch.setattr(main.ProgramService, "list_programs", _broken)
    monkeypatch.setattr(main.ProgramService, "get_program", _broken)
    for path in ("/api/audio", "/api/audio/stats", "/api/library", "/api/audio/1", "/api/audio/1/share"):
        r = client.get(path)
        assert r.status_code == 500, path
        assert "error" in r.json(), path


def test_unsupported_method(client):
    assert client.patch("/api/audio").status_code == 405

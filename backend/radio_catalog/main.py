"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the radio program catalog.
Controllers are thin: they parse the request, delegate to services and
return JSON. Failures are logged and reported as `{"error": ...}` bodies.

Endpoints implemented:
- GET /api/audio
- POST /api/audio (multipart form)
- PUT /api/audio (multipart form)
- DELETE /api/audio?id=
- GET /api/audio/stats
- GET /api/audio/{id}
- GET /api/audio/{id}/share
- GET /api/library
- POST /api/download
- GET /api/serve-audio?filename=
- GET /api/test-db
- GET /api/test-file-access
- GET /health
"""

import datetime as dt
import json
import logging
import os
import time
import uuid
from typing import List, Optional
from urllib.parse import quote

from fastapi import FastAPI, Depends, UploadFile, File, Form, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlmodel import Session

from . import library
from .config import settings
from .database import create_db_and_tables, get_session
from .schemas import CatalogStats, DownloadRequest, LibraryPage, ProgramOut, ShareLink
from .services import AudioUpload, DownloadService, ProgramService, validate_program_fields
from .storage import MEDIA_MOUNT, BlobStorage, LocalBlobStorage, create_storage

app = FastAPI(title="Radio Program Catalog API")
logger = logging.getLogger("radio_catalog.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

_storage = create_storage(settings)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Local blobs are served by the app itself so their audio_url resolves.
if isinstance(_storage, LocalBlobStorage):
    app.mount(MEDIA_MOUNT, StaticFiles(directory=_storage.root), name="media")

create_db_and_tables()


def get_storage() -> BlobStorage:
    """FastAPI dependency returning the configured blob store."""
    return _storage


class UploadRejected(Exception):
    """An uploaded file failed the size or type checks."""
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/api"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


def _read_upload(file: Optional[UploadFile]) -> Optional[AudioUpload]:
    """Read an optional audio upload, enforcing type and size limits.

    Browsers send an empty part with no filename when no file was chosen;
    that counts as "no file".
    """
    if file is None or not file.filename:
        return None
    content_type = file.content_type
    if content_type and not (content_type.startswith("audio/") or content_type == "application/octet-stream"):
        raise UploadRejected(415, f"unsupported content type: {content_type}")
    payload = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise UploadRejected(413, "file too large")
    if not payload:
        raise UploadRejected(400, "uploaded file is empty")
    return AudioUpload(filename=file.filename, content_type=content_type, data=payload)


def _parse_id(raw: Optional[str]) -> int:
    if raw is None or not str(raw).strip():
        raise ValueError("id is required")
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValueError(f"id must be an integer, got {raw!r}")


def _content_disposition(file_name: str) -> str:
    # control characters, quotes and backslashes never reach the quoted fallback
    ascii_name = file_name.encode("ascii", "ignore").decode("ascii")
    fallback = "".join(c for c in ascii_name if " " <= c < "\x7f" and c not in '"\\').strip() or "audio.mp3"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"


@app.get("/api/audio", response_model=List[ProgramOut])
def list_programs(db: Session = Depends(get_session), storage: BlobStorage = Depends(get_storage)):
    """List every program, newest date first. An empty catalog gives `[]`."""
    try:
        rows = ProgramService(db, storage).list_programs()
    except Exception as e:
        logger.exception("Error fetching audio entries")
        return _error(500, f"Error fetching audio entries: {e}")
    logger.debug("listing %d audio entries", len(rows))
    return rows


@app.post("/api/audio", status_code=201)
def create_program(
    programName: Optional[str] = Form(default=None),
    date: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    audioFile: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_session),
    storage: BlobStorage = Depends(get_storage),
):
    """Create a program from a multipart form with an optional audio file.

    The audio blob is uploaded first and its URL stored on the new row.
    """
    raw = {"programName": programName, "date": date, "category": category, "description": description}
    try:
        fields = validate_program_fields(raw)
        upload = _read_upload(audioFile)
    except ValueError as e:
        return _error(400, str(e))
    except UploadRejected as e:
        return _error(e.status_code, str(e))
    try:
        program = ProgramService(db, storage).create(fields, upload)
    except Exception as e:
        logger.exception("Error processing audio entry")
        return _error(500, f"Error processing audio entry: {e}")
    return JSONResponse(status_code=201, content={"message": "Audio entry added successfully", "id": program.id})


@app.put("/api/audio")
def update_program(
    id: Optional[str] = Form(default=None),
    programName: Optional[str] = Form(default=None),
    date: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    audioFile: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_session),
    storage: BlobStorage = Depends(get_storage),
):
    """Update a program; a new audio file replaces the stored one.

    Without a file only the metadata fields change.
    """
    raw = {"programName": programName, "date": date, "category": category, "description": description}
    try:
        program_id = _parse_id(id)
        fields = validate_program_fields(raw)
        upload = _read_upload(audioFile)
    except ValueError as e:
        return _error(400, str(e))
    except UploadRejected as e:
        return _error(e.status_code, str(e))
    try:
        updated = ProgramService(db, storage).update(program_id, fields, upload)
    except Exception as e:
        logger.exception("Error processing audio entry")
        return _error(500, f"Error processing audio entry: {e}")
    if updated is None:
        return _error(404, "Program not found")
    return {"message": "Audio entry updated successfully"}


@app.delete("/api/audio")
def delete_program(
    id: Optional[str] = Query(default=None),
    db: Session = Depends(get_session),
    storage: BlobStorage = Depends(get_storage),
):
    """Delete a program: its stored blob first, then the row."""
    try:
        program_id = _parse_id(id)
    except ValueError as e:
        return _error(400, str(e))
    try:
        deleted = ProgramService(db, storage).delete(program_id)
    except Exception as e:
        logger.exception("Error deleting audio entry")
        return _error(500, f"Error deleting audio entry: {e}")
    if not deleted:
        return _error(404, "Program not found")
    return {"message": "Audio entry deleted successfully"}


@app.get("/api/audio/stats", response_model=CatalogStats)
def catalog_stats(db: Session = Depends(get_session), storage: BlobStorage = Depends(get_storage)):
    """Totals, category distribution and uploads of the last seven days."""
    try:
        rows = ProgramService(db, storage).list_programs()
    except Exception as e:
        logger.exception("Error fetching audio entries")
        return _error(500, f"Error fetching audio entries: {e}")
    return library.catalog_stats(rows, today=dt.date.today())


@app.get("/api/audio/{program_id}", response_model=ProgramOut)
def get_program(program_id: int, db: Session = Depends(get_session), storage: BlobStorage = Depends(get_storage)):
    try:
        program = ProgramService(db, storage).get_program(program_id)
    except Exception:
        logger.exception("Database error loading program %s", program_id)
        return _error(500, "Internal server error")
    if program is None:
        return _error(404, "Program not found")
    return program


@app.get("/api/audio/{program_id}/share", response_model=ShareLink)
def share_program(program_id: int, db: Session = Depends(get_session), storage: BlobStorage = Depends(get_storage)):
    """Return the public page URL and share title for a program."""
    try:
        program = ProgramService(db, storage).get_program(program_id)
    except Exception:
        logger.exception("Database error loading program %s", program_id)
        return _error(500, "Internal server error")
    if program is None:
        return _error(404, "Program not found")
    return library.share_link(settings.PUBLIC_BASE_URL, program, settings.SITE_TITLE)


@app.get("/api/library", response_model=LibraryPage)
def library_page(
    q: str = "",
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    category: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    db: Session = Depends(get_session),
    storage: BlobStorage = Depends(get_storage),
):
    """Search, filter and paginate the catalog the way the library view does.

    `categories` lists every category in the catalog, not only those on the
    current page, so filter buttons stay stable while browsing.
    """
    try:
        rows = ProgramService(db, storage).list_programs()
    except Exception as e:
        logger.exception("Error fetching audio entries")
        return _error(500, f"Error fetching audio entries: {e}")
    filtered = library.filter_entries(rows, q, start_date, end_date, category or None)
    items, page_count = library.paginate(filtered, page)
    return {
        "items": items,
        "page": page,
        "page_count": page_count,
        "total": len(filtered),
        "per_page": library.ITEMS_PER_PAGE,
        "categories": library.categories(rows),
    }


@app.post("/api/download")
def download(payload: DownloadRequest, storage: BlobStorage = Depends(get_storage)):
    """Proxy an audio file as an attachment so browsers save it to disk."""
    svc = DownloadService(storage, settings.DOWNLOAD_ALLOWED_HOSTS, settings.DOWNLOAD_TIMEOUT_SECONDS)
    try:
        content = svc.fetch(payload.url)
    except ValueError as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Download error for %s", payload.url)
        return _error(500, "Failed to download file")
    file_name = payload.fileName or "audio.mp3"
    return Response(
        content=content,
        media_type="audio/mpeg",
        headers={
            "Content-Disposition": _content_disposition(file_name),
            "Content-Length": str(len(content)),
        },
    )


@app.get("/api/serve-audio")
def serve_audio(filename: str = Query(...)):
    """Stream a file from the local uploads directory."""
    if not filename or "/" in filename or "\\" in filename or filename in (".", ".."):
        return _error(400, "invalid filename")
    path = settings.UPLOADS_DIR / filename
    if not path.is_file():
        return _error(404, "File not found")
    return FileResponse(path, media_type="audio/mpeg")


@app.get("/api/test-db")
def test_db(db: Session = Depends(get_session)):
    """Check that a pooled connection can be checked out and queried."""
    try:
        row = db.connection().execute(text("SELECT 1 AS test")).mappings().first()
    except Exception as e:
        logger.exception("Database connection error")
        return _error(500, "Database connection failed", details=str(e))
    return {"message": "Database connection successful", "result": dict(row)}


@app.get("/api/test-file-access")
def test_file_access():
    """List the files present in the local uploads directory."""
    try:
        files = sorted(os.listdir(settings.UPLOADS_DIR))
    except OSError:
        logger.exception("Error reading uploads directory %s", settings.UPLOADS_DIR)
        return _error(500, "Error reading uploads directory")
    return {"files": files}


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>{settings.SITE_TITLE} API</title>
    </head>
    <body>
      <h1>{settings.SITE_TITLE} catalog API</h1>
      <ul>
        <li><a href="/docs">Swagger UI</a></li>
        <li><a href="/api/audio">All programs</a></li>
        <li><a href="/api/library">Library view (page 1)</a></li>
      </ul>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}

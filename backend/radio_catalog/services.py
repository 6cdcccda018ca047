"""Business logic services used by HTTP controllers.

`ProgramService` runs the upload pipeline: validate the submitted fields,
optionally store the audio blob, then insert/update/delete the catalog row.
The blob store and the table are not linked transactionally; blob
deletions are best-effort and a failure leaves an orphaned file that is
only logged.

`DownloadService` resolves a program's audio URL to bytes for the download
proxy, reading from the blob store when the URL belongs to it.
"""

import datetime as dt
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional
from urllib.parse import urlparse

import httpx
from sqlmodel import Session

from . import models, repositories
from .storage import BlobStorage, audio_key

logger = logging.getLogger("radio_catalog.services")

REQUIRED_FIELDS = ("programName", "date", "category", "description")


@dataclass
class AudioUpload:
    """An uploaded audio file read into memory."""
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass
class ProgramFields:
    program_name: str
    date: dt.date
    category: str
    description: str


def validate_program_fields(raw: dict) -> ProgramFields:
    """Check the submitted form values and return them typed.

    Raises ValueError naming the first missing or malformed field.
    """
    cleaned = {}
    for name in REQUIRED_FIELDS:
        value = raw.get(name)
        if value is None or not str(value).strip():
            raise ValueError(f"{name} is required")
        cleaned[name] = str(value).strip()
    # a full ISO timestamp is accepted; only its date part is kept
    day = cleaned["date"].partition("T")[0]
    try:
        when = dt.datetime.strptime(day, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"date must be YYYY-MM-DD, got {cleaned['date']!r}")
    if len(cleaned["programName"]) > 255:
        raise ValueError("programName is too long")
    if len(cleaned["category"]) > 100:
        raise ValueError("category is too long")
    return ProgramFields(
        program_name=cleaned["programName"],
        date=when,
        category=cleaned["category"],
        description=cleaned["description"],
    )


def unique_file_name(original: str, now_ms: Optional[int] = None, token: Optional[str] = None) -> str:
    """Return `<epoch millis>-<random token>-<basename>` for an uploaded file name.

    The token keeps two uploads of the same file in the same millisecond
    from sharing a blob key.
    """
    base = PurePosixPath(original.replace("\\", "/")).name or "audio"
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    token = token or uuid.uuid4().hex[:8]
    return f"{stamp}-{token}-{base}"


class ProgramService:
    """Create, update and delete catalog entries and their audio blobs."""
    def __init__(self, session: Session, storage: BlobStorage):
        self.session = session
        self.storage = storage
        self.repo = repositories.ProgramRepository(session)

    def list_programs(self) -> List[models.Program]:
        return self.repo.list_all()

    def get_program(self, program_id: int) -> Optional[models.Program]:
        return self.repo.get(program_id)

    def create(self, fields: ProgramFields, upload: Optional[AudioUpload] = None) -> models.Program:
        """Store the optional audio blob, then insert the row."""
        url, file_name = self._store(upload) if upload else (None, None)
        program = models.Program(
            program_name=fields.program_name,
            date=fields.date,
            category=fields.category,
            description=fields.description,
            audio_url=url,
            file_name=file_name,
        )
        created = self.repo.create(program)
        logger.info("created program id=%s file=%s", created.id, file_name)
        return created

    def update(self, program_id: int, fields: ProgramFields, upload: Optional[AudioUpload] = None) -> Optional[models.Program]:
        """Update metadata and optionally replace the audio blob.

        Returns None when the program does not exist; nothing is written to
        the blob store in that case. With a new file the new blob is stored
        first, the row is pointed at it, and the previous blob is removed
        best-effort.
        """
        program = self.repo.get(program_id)
        if program is None:
            return None
        previous_file = program.file_name
        program.program_name = fields.program_name
        program.date = fields.date
        program.category = fields.category
        program.description = fields.description
        if upload:
            program.audio_url, program.file_name = self._store(upload)
        saved = self.repo.save(program)
        if upload and previous_file and previous_file != saved.file_name:
            self._remove_blob(previous_file)
        logger.info("updated program id=%s replaced_file=%s", program_id, bool(upload))
        return saved

    def delete(self, program_id: int) -> bool:
        """Remove the blob (best-effort) and then the row.

        Returns False when the program does not exist.
        """
        program = self.repo.get(program_id)
        if program is None:
            return False
        if program.file_name:
            self._remove_blob(program.file_name)
        self.repo.delete(program)
        logger.info("deleted program id=%s", program_id)
        return True

    def _store(self, upload: AudioUpload):
        file_name = unique_file_name(upload.filename)
        url = self.storage.upload(audio_key(file_name), upload.data, upload.content_type)
        return url, file_name

    def _remove_blob(self, file_name: str) -> None:
        try:
            self.storage.delete(audio_key(file_name))
        except Exception:
            logger.exception("failed to delete blob %s; leaving it orphaned", file_name)


def fetch_remote(url: str, timeout: float, check=None, transport: Optional[httpx.BaseTransport] = None) -> bytes:
    """GET `url` and return the body, raising on HTTP errors.

    `check` is called with the URL of every request, redirect hops
    included, and may raise to abort the fetch.
    """
    hooks = {"request": [lambda request: check(str(request.url))]} if check else {}
    with httpx.Client(timeout=timeout, follow_redirects=True, event_hooks=hooks, transport=transport) as client:
        response = client.get(url)
        response.raise_for_status()
        return response.content


class DownloadService:
    """Resolve audio URLs to bytes for the download proxy."""
    def __init__(self, storage: BlobStorage, allowed_hosts: Optional[List[str]] = None, timeout: float = 60.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.storage = storage
        self.allowed_hosts = [h.lower() for h in (allowed_hosts or [])]
        self.timeout = timeout
        self.transport = transport

    def check_url(self, url: str) -> None:
        """Raise ValueError for URLs the proxy refuses to fetch."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("url must be an absolute http(s) URL")
        if self.allowed_hosts and parsed.hostname.lower() not in self.allowed_hosts:
            raise ValueError(f"host not allowed: {parsed.hostname}")

    def fetch(self, url: str) -> bytes:
        key = self.storage.key_for_url(url)
        if key is not None:
            return self.storage.read(key)
        self.check_url(url)
        return fetch_remote(url, self.timeout, check=self.check_url, transport=self.transport)

"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable. Field names follow the wire
format the existing web client already consumes (snake_case rows,
camelCase form/JSON inputs).
"""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgramOut(BaseModel):
    """A catalog row as returned by the listing and detail endpoints."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    program_name: str
    date: dt.date
    category: str
    description: str
    audio_url: Optional[str] = None
    file_name: Optional[str] = None


class DownloadRequest(BaseModel):
    """Body of the download proxy: where to fetch and what to call it."""
    url: str
    fileName: Optional[str] = None


class ShareLink(BaseModel):
    url: str
    title: str


class CategoryShare(BaseModel):
    category: str
    count: int
    percentage: float


class RecentUpload(BaseModel):
    date: dt.date
    count: int


class CatalogStats(BaseModel):
    """Summary figures derived from the catalog listing."""
    total_programs: int
    category_distribution: List[CategoryShare]
    recent_uploads: List[RecentUpload]


class LibraryPage(BaseModel):
    """One page of the filtered library view."""
    items: List[ProgramOut]
    page: int
    page_count: int
    total: int
    per_page: int = Field(default=9)
    categories: List[str]

"""SQLModel data models.

The catalog has a single table, `audio_entries`, holding one row per radio
program together with the location of its stored audio file.
"""

import datetime as dt
from typing import Optional

from sqlmodel import SQLModel, Field


class Program(SQLModel, table=True):
    """A radio program (audio entry).

    Fields:
    - `audio_url`: public URL of the stored audio blob, if any
    - `file_name`: blob name under the `audio/` prefix of the blob store;
      a program references at most one stored blob
    """
    __tablename__ = "audio_entries"

    id: Optional[int] = Field(default=None, primary_key=True)
    program_name: str = Field(max_length=255)
    date: dt.date = Field(index=True)
    category: str = Field(max_length=100, index=True)
    description: str
    audio_url: Optional[str] = Field(default=None, max_length=1024)
    file_name: Optional[str] = Field(default=None, max_length=512)

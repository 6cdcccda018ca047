"""Repository classes encapsulating database operations.

The catalog has one aggregate, the `Program`. The repository returns
SQLModel objects and commits/refreshes where appropriate; there are no
explicit transactions beyond one commit per write.
"""

from typing import List, Optional
from sqlmodel import Session, select
from . import models


class ProgramRepository:
    """CRUD operations for `Program` rows in `audio_entries`."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, program: models.Program) -> models.Program:
        """Persist a new program and return it with its assigned id."""
        self.session.add(program)
        self.session.commit()
        self.session.refresh(program)
        return program

    def get(self, program_id: int) -> Optional[models.Program]:
        """Get a `Program` by primary key or `None` if not found."""
        return self.session.get(models.Program, program_id)

    def list_all(self) -> List[models.Program]:
        """Return every program, newest broadcast date first."""
        stmt = select(models.Program).order_by(models.Program.date.desc(), models.Program.id.desc())
        return list(self.session.exec(stmt).all())

    def save(self, program: models.Program) -> models.Program:
        """Write back changes made to a managed program."""
        self.session.add(program)
        self.session.commit()
        self.session.refresh(program)
        return program

    def delete(self, program: models.Program) -> None:
        self.session.delete(program)
        self.session.commit()

"""
Pydantic model for an installed build, as stored in the installation registry.
"""

import uuid
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

# Installations played within this window are never removed by cleanup.
RECENTLY_USED_WINDOW = timedelta(minutes=5)


class Installation(BaseModel):
    """A registered, extracted copy of one fork and build version on disk."""

    installation_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    fork_name: str
    build_version: int
    installation_path: str = ""
    last_played_date: datetime | None = None

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True

    @property
    def key(self) -> tuple[str, int]:
        return self.fork_name, self.build_version

    @property
    def recently_used(self) -> bool:
        if self.last_played_date is None:
            return False
        return datetime.now() - self.last_played_date < RECENTLY_USED_WINDOW

    def mark_played(self) -> None:
        self.last_played_date = datetime.now()

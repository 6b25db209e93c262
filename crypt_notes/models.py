"""Pydantic models for notes and the plaintext notes document."""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

PLAINTEXT_FORMAT = "crypt-notes"
ENCRYPTED_FORMAT = "crypt-notes-encrypted"
FORMAT_VERSION = 1


def utc_now() -> datetime:
    return datetime.now(UTC)


class Note(BaseModel):
    """A single note with metadata."""

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    title: str = Field(default="", description="Note title, may be empty")
    content: str = Field(default="", description="Note body, may be empty")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time (UTC)")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update time (UTC)")
    pinned: bool = False

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Hand-edited files may drop the offset
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _check_timestamps(self) -> "Note":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at is earlier than created_at")
        return self


class NotesDocument(BaseModel):
    """The plaintext document: written as-is or wrapped by encryption."""

    format: str = PLAINTEXT_FORMAT
    version: int = FORMAT_VERSION
    notes: list[Note] = Field(default_factory=list)

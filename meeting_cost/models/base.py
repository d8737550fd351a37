"""Base entity class for all ledger records."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class BaseEntity(BaseModel):
    """Base class for all persisted records.

    Provides:
    - Unique ID (UUID)
    - Created/updated timestamps
    - Soft-delete marker
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_default=True,
        from_attributes=True,
    )

    id: UUID = Field(default_factory=uuid4, description="Unique record identifier")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the record was created",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the record was last updated",
    )
    deleted_at: datetime | None = Field(
        default=None,
        description="Soft-delete tombstone (None while live)",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def touch(self, at: datetime | None = None) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = at or datetime.now(UTC)

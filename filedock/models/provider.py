"""
Storage provider models: the persisted record and its pydantic views.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base, SoftDeleteMixin, TimestampMixin

# Configuration keys whose values are masked in redacted views
SECRET_FIELDS = frozenset({"secret", "key", "key_file", "token", "password"})
REDACTED = "********"


class StorageProviderRecord(Base, TimestampMixin, SoftDeleteMixin):
    """
    Persisted storage provider.

    The configuration column holds an encrypted token; the driver is
    mirrored in plain text for querying.
    """

    __tablename__ = "storage_providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    driver: Mapped[str] = mapped_column(String(50), nullable=False)
    configuration: Mapped[str] = mapped_column(Text, nullable=False)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    team_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    def __repr__(self):
        return f"<StorageProviderRecord(id={self.id}, name={self.name!r}, driver={self.driver!r})>"


class ProviderCreate(BaseModel):
    """Input for creating a provider. Field presence is checked by the store."""

    label: Optional[str] = Field(None, description="Display name", max_length=255)
    name: Optional[str] = Field(None, description="Unique name", max_length=255)
    configuration: Dict[str, Any] = Field(
        default_factory=dict,
        description="Driver name plus driver-specific fields"
    )

    @field_validator('label', 'name', mode='before')
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class ProviderUpdate(BaseModel):
    """Partial update; configuration keys are merged into the existing ones."""

    label: Optional[str] = Field(None, max_length=255)
    name: Optional[str] = Field(None, max_length=255)
    configuration: Optional[Dict[str, Any]] = None

    @field_validator('label', 'name', mode='before')
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class ProviderConfig(BaseModel):
    """
    A provider with its configuration decrypted.

    Instances live for the duration of one request; never persist them.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "label": "Team archive",
                "name": "team-archive",
                "driver": "s3",
                "configuration": {
                    "driver": "s3",
                    "key": "AKIA...",
                    "secret": "...",
                    "region": "eu-west-1",
                    "bucket": "team-archive",
                    "prefix": "uploads"
                },
                "owner_id": 7,
                "team_id": 3
            }
        }
    )

    id: Optional[int] = None
    label: str
    name: str
    driver: str
    configuration: Dict[str, Any]
    owner_id: Optional[int] = None
    team_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: StorageProviderRecord, configuration: Dict[str, Any]) -> 'ProviderConfig':
        """Build from a record and its decrypted configuration."""
        return cls(
            id=record.id,
            label=record.label,
            name=record.name,
            driver=record.driver,
            configuration=configuration,
            owner_id=record.owner_id,
            team_id=record.team_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
            deleted_at=record.deleted_at
        )

    def redacted(self) -> Dict[str, Any]:
        """Serialize with secret configuration values masked."""
        data = self.model_dump()
        data["configuration"] = {
            field: REDACTED if field in SECRET_FIELDS and value else value
            for field, value in self.configuration.items()
        }
        return data

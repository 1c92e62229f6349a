"""
Provider configuration store.

Persists storage provider records with their configuration encrypted, and
validates every create and update twice: once in the store's public methods
and again in an ORM pre-save hook that also catches writes made around them.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import event, select
from sqlalchemy.orm import Session, object_session

from ..database import CIPHER_INFO_KEY
from ..exceptions import (
    EncryptionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ..models.provider import (
    ProviderConfig,
    ProviderCreate,
    ProviderUpdate,
    StorageProviderRecord,
)
from .drivers import configuration_errors
from .tester import ConnectionTester

logger = logging.getLogger(__name__)


def _pydantic_errors(error: PydanticValidationError) -> Dict[str, str]:
    return {
        ".".join(str(part) for part in item["loc"]) or "data": item["msg"]
        for item in error.errors()
    }


def collect_errors(label: Optional[str], name: Optional[str], configuration: Mapping[str, Any]) -> Dict[str, str]:
    """
    Collect every violation of a provider's fields.

    Raises:
        UnsupportedDriverError: If the configuration names an unknown driver
    """
    errors = {}
    if not label:
        errors["label"] = "is required"
    if not name:
        errors["name"] = "is required"
    errors.update(configuration_errors(configuration))
    return errors


@event.listens_for(StorageProviderRecord, "before_insert")
@event.listens_for(StorageProviderRecord, "before_update")
def _validate_before_save(mapper, connection, target: StorageProviderRecord) -> None:
    """Re-validate the decrypted configuration right before it is written."""
    session = object_session(target)
    cipher = session.info.get(CIPHER_INFO_KEY) if session is not None else None
    if cipher is None:
        raise EncryptionError("No configuration cipher attached to the session")

    configuration = cipher.decrypt(target.configuration)
    errors = collect_errors(target.label, target.name, configuration)
    if configuration.get("driver") != target.driver:
        errors.setdefault("driver", "does not match the encrypted configuration")
    if errors:
        raise ValidationError(errors)


class ProviderStore:
    """
    CRUD operations for storage providers.

    The store flushes but never commits; transaction boundaries belong to
    the caller's session.
    """

    def __init__(self, session: Session, connection_tester: Optional[ConnectionTester] = None):
        """
        Initialize provider store.

        Args:
            session: SQLAlchemy session carrying a cipher in its info dict
            connection_tester: When given, configurations are tested before
                they are persisted
        """
        cipher = session.info.get(CIPHER_INFO_KEY)
        if cipher is None:
            raise EncryptionError("No configuration cipher attached to the session")
        self.session = session
        self.cipher = cipher
        self.connection_tester = connection_tester

    def _to_config(self, record: StorageProviderRecord) -> ProviderConfig:
        return ProviderConfig.from_record(record, self.cipher.decrypt(record.configuration))

    def _get_record(self, provider_id: int) -> StorageProviderRecord:
        record = self.session.get(StorageProviderRecord, provider_id)
        if record is None or record.is_deleted:
            raise NotFoundError(f"Storage provider with id '{provider_id}' not found")
        return record

    def _name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(StorageProviderRecord.id).where(StorageProviderRecord.name == name)
        if exclude_id is not None:
            stmt = stmt.where(StorageProviderRecord.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def _check(self, label, name, configuration, exclude_id: Optional[int] = None) -> None:
        errors = collect_errors(label, name, configuration)
        if name and "name" not in errors and self._name_taken(name, exclude_id):
            errors["name"] = "has already been taken"
        if errors:
            raise ValidationError(errors)

    def create(
        self,
        data: Union[ProviderCreate, Mapping[str, Any]],
        owner_id: Optional[int],
        team_id: Optional[int] = None,
    ) -> ProviderConfig:
        """
        Create a provider owned by owner_id.

        Returns:
            The created provider, configuration decrypted

        Raises:
            UnauthorizedError: If owner_id is missing
            UnsupportedDriverError: If the driver is not registered
            ValidationError: Naming every missing or invalid field
            StorageConnectionError: If the connection test fails
        """
        if owner_id is None:
            raise UnauthorizedError("An authenticated owner is required to create a storage provider")

        if not isinstance(data, ProviderCreate):
            try:
                data = ProviderCreate.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(_pydantic_errors(e)) from e

        configuration = dict(data.configuration)
        self._check(data.label, data.name, configuration)

        if self.connection_tester is not None:
            self.connection_tester.test(configuration)

        record = StorageProviderRecord(
            label=data.label,
            name=data.name,
            driver=configuration["driver"],
            configuration=self.cipher.encrypt(configuration),
            owner_id=owner_id,
            team_id=team_id,
        )
        self.session.add(record)
        self.session.flush()

        logger.info(f"Created storage provider '{record.name}' (id={record.id}, driver={record.driver})")
        return ProviderConfig.from_record(record, configuration)

    def update(self, provider_id: int, patch: Union[ProviderUpdate, Mapping[str, Any]]) -> ProviderConfig:
        """
        Merge patch into a provider and re-validate the merged result.

        Configuration keys are merged one by one into the existing
        configuration, so a patch may carry only the fields that change.

        Raises:
            NotFoundError: If the provider does not exist or is deleted
            UnsupportedDriverError, ValidationError, StorageConnectionError
        """
        if not isinstance(patch, ProviderUpdate):
            try:
                patch = ProviderUpdate.model_validate(patch)
            except PydanticValidationError as e:
                raise ValidationError(_pydantic_errors(e)) from e

        record = self._get_record(provider_id)
        current = self.cipher.decrypt(record.configuration)

        label = patch.label if patch.label is not None else record.label
        name = patch.name if patch.name is not None else record.name
        configuration = dict(current)
        if patch.configuration:
            configuration.update(patch.configuration)

        self._check(label, name, configuration, exclude_id=record.id)

        if self.connection_tester is not None and configuration != current:
            self.connection_tester.test(configuration)

        record.label = label
        record.name = name
        record.driver = configuration["driver"]
        record.configuration = self.cipher.encrypt(configuration)
        self.session.flush()

        logger.info(f"Updated storage provider '{record.name}' (id={record.id})")
        return ProviderConfig.from_record(record, configuration)

    def get(self, provider_id: int) -> ProviderConfig:
        """
        Get a provider by id.

        Raises:
            NotFoundError: If the provider does not exist or is deleted
        """
        return self._to_config(self._get_record(provider_id))

    def list(self, owner_id: int, team_id: Optional[int] = None) -> List[ProviderConfig]:
        """List active providers of an owner, optionally within one team."""
        stmt = StorageProviderRecord.active_query().where(StorageProviderRecord.owner_id == owner_id)
        if team_id is not None:
            stmt = stmt.where(StorageProviderRecord.team_id == team_id)
        records = self.session.execute(stmt.order_by(StorageProviderRecord.id)).scalars().all()
        return [self._to_config(record) for record in records]

    def delete(self, provider_id: int) -> None:
        """
        Soft delete a provider.

        Raises:
            NotFoundError: If the provider does not exist or is already deleted
        """
        record = self._get_record(provider_id)
        record.soft_delete(self.session)
        logger.info(f"Soft-deleted storage provider '{record.name}' (id={record.id})")

    def restore(self, provider_id: int) -> ProviderConfig:
        """
        Restore a soft-deleted provider.

        Raises:
            NotFoundError: If no deleted provider has this id
        """
        record = self.session.get(StorageProviderRecord, provider_id)
        if record is None or not record.is_deleted:
            raise NotFoundError(f"Deleted storage provider with id '{provider_id}' not found")
        record.restore(self.session)
        logger.info(f"Restored storage provider '{record.name}' (id={record.id})")
        return self._to_config(record)

"""
Unit tests for the provider store and the ORM pre-save guard.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from filedock.database import create_session_factory
from filedock.exceptions import (
    EncryptionError,
    NotFoundError,
    StorageConnectionError,
    UnauthorizedError,
    UnsupportedDriverError,
    ValidationError,
)
from filedock.models.provider import REDACTED, ProviderCreate, StorageProviderRecord
from filedock.storage.store import ProviderStore


def provider_data(configuration, name="team-archive", label="Team archive"):
    return {"label": label, "name": name, "configuration": configuration}


class TestProviderStoreCreate:
    """Test cases for ProviderStore.create."""

    def test_create_s3_provider(self, session, s3_config):
        """Test creating a provider with every required s3 field."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7, team_id=3)

        assert provider.id is not None
        assert provider.driver == "s3"
        assert provider.configuration == s3_config
        assert provider.owner_id == 7
        assert provider.team_id == 3
        assert provider.created_at is not None

    def test_configuration_is_encrypted_at_rest(self, session, cipher, s3_config):
        """Test that the stored column holds a token, not the secret."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        record = session.get(StorageProviderRecord, provider.id)
        assert "s3-secret-value" not in record.configuration
        assert cipher.decrypt(record.configuration) == s3_config

    def test_accepts_pydantic_input(self, session, local_config):
        """Test creating from a ProviderCreate model with whitespace trimmed."""
        store = ProviderStore(session)
        data = ProviderCreate(label="  Local  ", name=" local ", configuration=local_config)
        provider = store.create(data, owner_id=1)

        assert provider.label == "Local"
        assert provider.name == "local"

    def test_missing_secret(self, session, s3_config):
        """Test that a missing s3 secret is reported by field name."""
        del s3_config["secret"]
        store = ProviderStore(session)

        with pytest.raises(ValidationError) as exc_info:
            store.create(provider_data(s3_config), owner_id=7)

        assert exc_info.value.fields == ["secret"]
        assert "secret is required" in exc_info.value.message

    def test_collects_every_error(self, session):
        """Test that label, name and driver are all reported together."""
        store = ProviderStore(session)

        with pytest.raises(ValidationError) as exc_info:
            store.create({"label": " ", "configuration": {}}, owner_id=7)

        assert set(exc_info.value.fields) == {"label", "name", "driver"}

    def test_blank_required_field(self, session, s3_config):
        """Test that blank strings count as missing."""
        s3_config["bucket"] = "  "
        s3_config["region"] = None
        store = ProviderStore(session)

        with pytest.raises(ValidationError) as exc_info:
            store.create(provider_data(s3_config), owner_id=7)

        assert set(exc_info.value.fields) == {"bucket", "region"}

    def test_unknown_driver(self, session):
        """Test that an unknown driver is not reported as a validation error."""
        store = ProviderStore(session)

        with pytest.raises(UnsupportedDriverError) as exc_info:
            store.create(provider_data({"driver": "ftp", "host": "x"}), owner_id=7)

        assert exc_info.value.driver == "ftp"
        assert exc_info.value.status_code == 400

    def test_owner_required(self, session, s3_config):
        """Test that creating without an owner is refused."""
        store = ProviderStore(session)

        with pytest.raises(UnauthorizedError):
            store.create(provider_data(s3_config), owner_id=None)

    def test_duplicate_name(self, session, s3_config):
        """Test that provider names are unique."""
        store = ProviderStore(session)
        store.create(provider_data(s3_config), owner_id=7)

        with pytest.raises(ValidationError) as exc_info:
            store.create(provider_data(s3_config, label="Other"), owner_id=8)

        assert exc_info.value.errors == {"name": "has already been taken"}

    def test_name_of_deleted_provider_stays_taken(self, session, s3_config):
        """Test that soft-deleted providers keep their name reserved."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)
        store.delete(provider.id)

        with pytest.raises(ValidationError) as exc_info:
            store.create(provider_data(s3_config), owner_id=7)

        assert exc_info.value.fields == ["name"]

    def test_label_too_long(self, session, s3_config):
        """Test that pydantic errors are reported by field name."""
        store = ProviderStore(session)

        with pytest.raises(ValidationError) as exc_info:
            store.create(provider_data(s3_config, label="x" * 256), owner_id=7)

        assert exc_info.value.fields == ["label"]


class TestProviderStoreConnectionTest:
    """Test cases for the connection test gate."""

    def test_tested_before_persisting(self, session, s3_config):
        """Test that the tester receives the configuration."""
        tester = MagicMock()
        store = ProviderStore(session, connection_tester=tester)
        store.create(provider_data(s3_config), owner_id=7)

        tester.test.assert_called_once_with(s3_config)

    def test_failed_test_persists_nothing(self, session, s3_config):
        """Test that a failed connection test leaves no record behind."""
        tester = MagicMock()
        tester.test.side_effect = StorageConnectionError("Connection test failed: AccessDenied")
        store = ProviderStore(session, connection_tester=tester)

        with pytest.raises(StorageConnectionError):
            store.create(provider_data(s3_config), owner_id=7)

        assert session.execute(select(StorageProviderRecord)).scalars().all() == []

    def test_invalid_configuration_is_not_tested(self, session, s3_config):
        """Test that validation runs before the connection test."""
        del s3_config["key"]
        tester = MagicMock()
        store = ProviderStore(session, connection_tester=tester)

        with pytest.raises(ValidationError):
            store.create(provider_data(s3_config), owner_id=7)

        tester.test.assert_not_called()

    def test_update_without_configuration_change_is_not_tested(self, session, s3_config):
        tester = MagicMock()
        store = ProviderStore(session, connection_tester=tester)
        provider = store.create(provider_data(s3_config), owner_id=7)
        tester.reset_mock()

        store.update(provider.id, {"label": "Renamed"})

        tester.test.assert_not_called()

    def test_update_with_configuration_change_is_tested(self, session, s3_config):
        tester = MagicMock()
        store = ProviderStore(session, connection_tester=tester)
        provider = store.create(provider_data(s3_config), owner_id=7)
        tester.reset_mock()

        store.update(provider.id, {"configuration": {"region": "us-east-1"}})

        tester.test.assert_called_once_with({**s3_config, "region": "us-east-1"})


class TestProviderStoreUpdate:
    """Test cases for ProviderStore.update."""

    def test_merges_configuration(self, session, s3_config):
        """Test that a partial configuration patch keeps the other fields."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        updated = store.update(provider.id, {"configuration": {"prefix": "uploads"}})

        assert updated.configuration == {**s3_config, "prefix": "uploads"}
        assert store.get(provider.id).configuration["secret"] == "s3-secret-value"

    def test_update_label_and_name(self, session, s3_config):
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        updated = store.update(provider.id, {"label": "Archive", "name": "archive"})

        assert updated.label == "Archive"
        assert updated.name == "archive"

    def test_blanking_required_field(self, session, s3_config):
        """Test that the merged result is re-validated."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        with pytest.raises(ValidationError) as exc_info:
            store.update(provider.id, {"configuration": {"secret": ""}})

        assert exc_info.value.fields == ["secret"]
        assert store.get(provider.id).configuration["secret"] == "s3-secret-value"

    def test_switching_driver(self, session, s3_config, local_config):
        """Test that switching drivers requires the new driver's fields."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        updated = store.update(provider.id, {"configuration": local_config})

        assert updated.driver == "local"
        assert session.get(StorageProviderRecord, provider.id).driver == "local"

    def test_keeping_own_name(self, session, s3_config):
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        updated = store.update(provider.id, {"name": provider.name})

        assert updated.name == provider.name

    def test_taking_another_name(self, session, s3_config):
        store = ProviderStore(session)
        store.create(provider_data(s3_config, name="first"), owner_id=7)
        second = store.create(provider_data(s3_config, name="second"), owner_id=7)

        with pytest.raises(ValidationError) as exc_info:
            store.update(second.id, {"name": "first"})

        assert exc_info.value.fields == ["name"]

    def test_update_missing_provider(self, session):
        store = ProviderStore(session)

        with pytest.raises(NotFoundError):
            store.update(999, {"label": "Nothing"})


class TestProviderStoreLifecycle:
    """Test cases for get, list, delete and restore."""

    def test_get_missing(self, session):
        store = ProviderStore(session)

        with pytest.raises(NotFoundError) as exc_info:
            store.get(42)

        assert exc_info.value.status_code == 404

    def test_list_by_owner_and_team(self, session, s3_config):
        """Test listing providers scoped to an owner and a team."""
        store = ProviderStore(session)
        first = store.create(provider_data(s3_config, name="first"), owner_id=7, team_id=1)
        second = store.create(provider_data(s3_config, name="second"), owner_id=7, team_id=2)
        store.create(provider_data(s3_config, name="foreign"), owner_id=8, team_id=1)

        assert [p.name for p in store.list(7)] == ["first", "second"]
        assert [p.id for p in store.list(7, team_id=2)] == [second.id]
        assert store.list(7, team_id=1)[0].configuration == first.configuration

    def test_delete_hides_provider(self, session, s3_config):
        """Test that a soft-deleted provider is no longer listed or fetched."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        store.delete(provider.id)

        assert store.list(7) == []
        with pytest.raises(NotFoundError):
            store.get(provider.id)
        assert session.get(StorageProviderRecord, provider.id).deleted_at is not None

    def test_delete_twice(self, session, s3_config):
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)
        store.delete(provider.id)

        with pytest.raises(NotFoundError):
            store.delete(provider.id)

    def test_restore(self, session, s3_config):
        """Test that a restored provider is visible again."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)
        store.delete(provider.id)

        restored = store.restore(provider.id)

        assert restored.deleted_at is None
        assert store.get(provider.id).name == provider.name

    def test_restore_active_provider(self, session, s3_config):
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        with pytest.raises(NotFoundError):
            store.restore(provider.id)

    def test_redacted_view(self, session, s3_config):
        """Test that secrets are masked in the redacted view."""
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        data = provider.redacted()

        assert data["configuration"]["secret"] == REDACTED
        assert data["configuration"]["key"] == REDACTED
        assert data["configuration"]["bucket"] == "team-archive"
        assert provider.configuration["secret"] == "s3-secret-value"


class TestPreSaveGuard:
    """Test cases for validation at the ORM layer."""

    def test_direct_insert_is_validated(self, session, cipher):
        """Test that a record written around the store is still validated."""
        record = StorageProviderRecord(
            label="Raw",
            name="raw",
            driver="s3",
            configuration=cipher.encrypt({"driver": "s3", "key": "k", "region": "r"}),
            owner_id=1,
        )
        session.add(record)

        with pytest.raises(ValidationError) as exc_info:
            session.flush()

        assert set(exc_info.value.fields) == {"secret", "bucket"}

    def test_driver_column_must_match(self, session, cipher, local_config):
        record = StorageProviderRecord(
            label="Raw",
            name="raw",
            driver="s3",
            configuration=cipher.encrypt(local_config),
            owner_id=1,
        )
        session.add(record)

        with pytest.raises(ValidationError) as exc_info:
            session.flush()

        assert exc_info.value.fields == ["driver"]

    def test_direct_update_is_validated(self, session, cipher, s3_config):
        store = ProviderStore(session)
        provider = store.create(provider_data(s3_config), owner_id=7)

        record = session.get(StorageProviderRecord, provider.id)
        record.configuration = cipher.encrypt({**s3_config, "secret": None})

        with pytest.raises(ValidationError) as exc_info:
            session.flush()

        assert exc_info.value.fields == ["secret"]

    def test_store_requires_cipher(self, engine):
        """Test that a session without a cipher cannot back a store."""
        session = create_session_factory(engine)()
        try:
            with pytest.raises(EncryptionError):
                ProviderStore(session)
        finally:
            session.close()

    def test_insert_without_cipher(self, engine, cipher, s3_config):
        session = create_session_factory(engine)()
        session.add(StorageProviderRecord(
            label="Raw",
            name="raw",
            driver="s3",
            configuration=cipher.encrypt(s3_config),
            owner_id=1,
        ))
        try:
            with pytest.raises(EncryptionError):
                session.flush()
        finally:
            session.rollback()
            session.close()

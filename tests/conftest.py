"""
Shared fixtures: an in-memory database with a configuration cipher attached,
and provider configurations for the local and s3 drivers.
"""

import pytest

from filedock.crypto import ConfigCipher
from filedock.database import create_db_engine, create_session_factory, init_db
from filedock.models.provider import ProviderConfig


@pytest.fixture
def cipher():
    """Cipher with a fresh key."""
    return ConfigCipher(ConfigCipher.generate_key())


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine, cipher):
    """Session carrying the cipher, rolled back after the test."""
    session = create_session_factory(engine, cipher=cipher)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def local_config(tmp_path):
    """Configuration for a local provider rooted in a temporary directory."""
    return {"driver": "local", "root": str(tmp_path / "storage")}


@pytest.fixture
def s3_config():
    return {
        "driver": "s3",
        "key": "AKIAEXAMPLE",
        "secret": "s3-secret-value",
        "region": "eu-west-1",
        "bucket": "team-archive",
    }


@pytest.fixture
def local_provider(local_config):
    return ProviderConfig(
        id=1,
        label="Local disk",
        name="local-disk",
        driver="local",
        configuration=local_config,
        owner_id=7,
    )

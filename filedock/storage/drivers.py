"""
Driver registry.

Each driver is registered once with the configuration fields it requires and
the callable that builds its adapter. Adding a driver is a call to
register_driver(); nothing else branches on driver names.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..exceptions import UnsupportedDriverError, ValidationError
from .adapters import (
    FilesystemAdapter,
    GoogleCloudStorageAdapter,
    LocalFilesystemAdapter,
    S3FilesystemAdapter,
)

logger = logging.getLogger(__name__)

AdapterBuilder = Callable[[Mapping[str, Any]], FilesystemAdapter]


@dataclass(frozen=True)
class DriverSpec:
    """Registration entry for one storage driver."""

    name: str
    required_fields: Tuple[str, ...]
    builder: AdapterBuilder
    optional_fields: Tuple[str, ...] = ()


_REGISTRY: Dict[str, DriverSpec] = {}


def register_driver(spec: DriverSpec, replace: bool = False) -> None:
    """
    Register a driver.

    Raises:
        ValueError: If the name is taken and replace is False
    """
    if spec.name in _REGISTRY and not replace:
        raise ValueError(f"Driver already registered: {spec.name}")
    _REGISTRY[spec.name] = spec
    logger.debug(f"Registered storage driver: {spec.name}")


def unregister_driver(name: str) -> None:
    _REGISTRY.pop(name, None)


def get_driver(name: Optional[str]) -> DriverSpec:
    """
    Look up a driver by name.

    Raises:
        UnsupportedDriverError: If the name is missing or not registered
    """
    if not isinstance(name, str) or name not in _REGISTRY:
        raise UnsupportedDriverError(name)
    return _REGISTRY[name]


def supported_drivers() -> List[str]:
    return sorted(_REGISTRY)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def configuration_errors(configuration: Mapping[str, Any]) -> Dict[str, str]:
    """
    Collect every violation in a configuration.

    A missing driver is reported as a field error; an unknown one raises.

    Raises:
        UnsupportedDriverError: If the driver is set but not registered
    """
    driver = configuration.get("driver")
    if _is_blank(driver):
        return {"driver": "is required"}

    spec = get_driver(driver)
    return {
        field: "is required"
        for field in spec.required_fields
        if _is_blank(configuration.get(field))
    }


def validate_configuration(configuration: Mapping[str, Any]) -> DriverSpec:
    """
    Validate a configuration against its driver's required fields.

    Returns:
        The driver's DriverSpec

    Raises:
        UnsupportedDriverError: If the driver is not registered
        ValidationError: Naming every missing field
    """
    errors = configuration_errors(configuration)
    if errors:
        raise ValidationError(errors)
    return get_driver(configuration["driver"])


register_driver(DriverSpec(
    name="s3",
    required_fields=("key", "secret", "region", "bucket"),
    optional_fields=("prefix", "endpoint", "use_path_style_endpoint", "token"),
    builder=S3FilesystemAdapter.from_config,
))

register_driver(DriverSpec(
    name="google",
    required_fields=("project_id", "key_file", "bucket"),
    optional_fields=("prefix",),
    builder=GoogleCloudStorageAdapter.from_config,
))

register_driver(DriverSpec(
    name="local",
    required_fields=("root",),
    builder=LocalFilesystemAdapter.from_config,
))

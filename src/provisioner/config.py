"""Configuration management with validation.

Format constraints are enforced at configuration load time. Presence of the
subscription and location is checked when a provisioning pass starts, so a
missing value is reported by the pass rather than blocking application startup.
"""

from __future__ import annotations

import os
import re
import socket
from dataclasses import dataclass
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Tag contract shared with every resource this tool creates
COMPONENT_NAME_TAG = "aspire-component-name"
MANAGED_RESOURCE_GROUP_TAGS: dict[str, str] = {"aspire": "true"}

# Configuration constants with documented bounds
DEFAULT_OPERATION_TIMEOUT_SECONDS = 600
MIN_OPERATION_TIMEOUT_SECONDS = 30
MAX_OPERATION_TIMEOUT_SECONDS = 3600

MAX_MODEL_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max application model file
MAX_RESOURCE_GROUP_NAME_LENGTH = 90

# Input validation patterns
VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_LOCATION_PATTERN = r"^[a-z]{2,}[a-z0-9]*$"


@dataclass(frozen=True)
class ProvisionerConfig:
    """Provisioner configuration loaded from environment variables.

    Values that are present are validated at construction time. Invalid
    configurations raise ConfigurationError immediately rather than failing
    halfway through a provisioning pass.
    """

    subscription_id: str | None = None
    location: str | None = None

    # Explicit group must already exist; None means derived name + auto-create
    resource_group: str | None = None

    app_name: str = "app"
    machine_name: str = "localhost"

    operation_timeout_seconds: int = DEFAULT_OPERATION_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        errors: list[str] = []

        if self.subscription_id and not re.match(
            VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()
        ):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if self.location and not re.match(VALID_LOCATION_PATTERN, self.location.lower()):
            errors.append(f"AZURE_LOCATION must be a valid Azure region: {self.location}")

        if self.resource_group is not None:
            if not self.resource_group:
                errors.append("AZURE_RESOURCE_GROUP must not be empty when set")
            elif len(self.resource_group) > MAX_RESOURCE_GROUP_NAME_LENGTH:
                errors.append(
                    f"AZURE_RESOURCE_GROUP exceeds maximum length of "
                    f"{MAX_RESOURCE_GROUP_NAME_LENGTH}"
                )

        if not self.app_name:
            errors.append("APP_NAME must not be empty")

        if not self.machine_name:
            errors.append("MACHINE_NAME must not be empty")

        if not (
            MIN_OPERATION_TIMEOUT_SECONDS
            <= self.operation_timeout_seconds
            <= MAX_OPERATION_TIMEOUT_SECONDS
        ):
            errors.append(
                f"OPERATION_TIMEOUT must be between {MIN_OPERATION_TIMEOUT_SECONDS} "
                f"and {MAX_OPERATION_TIMEOUT_SECONDS} seconds"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def derived_resource_group(self) -> str:
        """Default group name built from the machine and application names."""
        return f"{self.machine_name.lower()}-{self.app_name.lower()}-rg"

    def require_subscription_id(self) -> str:
        if not self.subscription_id:
            raise ConfigurationError(
                "An azure subscription id is required. Set AZURE_SUBSCRIPTION_ID."
            )
        return self.subscription_id

    def require_location(self) -> str:
        if not self.location:
            raise ConfigurationError(
                "An azure location/region is required. Set AZURE_LOCATION."
            )
        return self.location

    @classmethod
    def from_env(cls) -> ProvisionerConfig:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription that hosts the development resources
            AZURE_LOCATION: Region used when creating the resource group and resources
            AZURE_RESOURCE_GROUP: Existing resource group to use (optional)
            APP_NAME: Application name used in the derived resource group name
                (default: name of the current directory)
            MACHINE_NAME: Machine name used in the derived resource group name
                (default: host name)
            OPERATION_TIMEOUT: Timeout for long-running Azure operations in
                seconds (default: 600)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID") or None,
            location=os.environ.get("AZURE_LOCATION") or None,
            resource_group=os.environ.get("AZURE_RESOURCE_GROUP"),
            app_name=os.environ.get("APP_NAME") or Path.cwd().name or "app",
            machine_name=os.environ.get("MACHINE_NAME") or socket.gethostname() or "localhost",
            operation_timeout_seconds=get_int(
                "OPERATION_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS
            ),
        )

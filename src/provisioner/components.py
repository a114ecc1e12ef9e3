"""Pydantic models for the declared cloud-backed components of an application.

Components form a tagged union discriminated by ``kind``. The provisioner reads
the declared fields and writes back exactly one value per component: the name
of the live resource that backs it.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

# =============================================================================
# Base Model
# =============================================================================


class BaseComponent(BaseModel):
    """Fields shared by every declared component."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    # Logical name, unique within the application model. Used as the tag value
    # that joins the component to its live resource.
    name: Annotated[str, Field(min_length=1, max_length=256)]

    @property
    def assigned_name(self) -> str | None:
        """Name of the live resource backing this component, once reconciled."""
        return None

    def connection_info(self) -> dict[str, str]:
        """Connection coordinates derived from the assigned resource name."""
        return {}


# =============================================================================
# Storage
# =============================================================================


class StorageComponent(BaseComponent):
    """A storage account used for blobs, queues and tables."""

    kind: Literal["storage"] = "storage"
    account_name: str | None = Field(None, alias="accountName")

    @property
    def assigned_name(self) -> str | None:
        return self.account_name

    def connection_info(self) -> dict[str, str]:
        if not self.account_name:
            return {}
        return {
            "accountName": self.account_name,
            "blobEndpoint": f"https://{self.account_name}.blob.core.windows.net/",
            "queueEndpoint": f"https://{self.account_name}.queue.core.windows.net/",
            "tableEndpoint": f"https://{self.account_name}.table.core.windows.net/",
        }


# =============================================================================
# Service Bus
# =============================================================================


class ServiceBusComponent(BaseComponent):
    """A service bus namespace with declared queues and topics."""

    kind: Literal["servicebus"] = "servicebus"
    queue_names: list[str] = Field(default_factory=list, alias="queueNames")
    topic_names: list[str] = Field(default_factory=list, alias="topicNames")
    namespace: str | None = None

    @field_validator("queue_names", "topic_names")
    @classmethod
    def validate_entity_names(cls, v: list[str]) -> list[str]:
        for entity in v:
            if not entity or not entity.strip():
                raise ValueError("queue and topic names must not be empty")
        return v

    @property
    def assigned_name(self) -> str | None:
        return self.namespace

    def connection_info(self) -> dict[str, str]:
        if not self.namespace:
            return {}
        return {
            "namespace": self.namespace,
            "fullyQualifiedNamespace": f"{self.namespace}.servicebus.windows.net",
        }


# =============================================================================
# Key Vault
# =============================================================================


class KeyVaultComponent(BaseComponent):
    """A secret vault using RBAC authorization."""

    kind: Literal["keyvault"] = "keyvault"
    vault_name: str | None = Field(None, alias="vaultName")

    @property
    def assigned_name(self) -> str | None:
        return self.vault_name

    def connection_info(self) -> dict[str, str]:
        if not self.vault_name:
            return {}
        return {
            "vaultName": self.vault_name,
            "vaultUri": f"https://{self.vault_name}.vault.azure.net/",
        }


AzureComponent = Annotated[
    StorageComponent | ServiceBusComponent | KeyVaultComponent,
    Field(discriminator="kind"),
]

AZURE_COMPONENT_TYPES: tuple[type[BaseComponent], ...] = (
    StorageComponent,
    ServiceBusComponent,
    KeyVaultComponent,
)


# =============================================================================
# Application Model
# =============================================================================


class AppModel(BaseModel):
    """The set of components an application declares."""

    model_config = {"extra": "ignore"}

    name: Annotated[str, Field(min_length=1)]
    components: list[AzureComponent] = Field(default_factory=list)

    @field_validator("components")
    @classmethod
    def validate_unique_names(cls, v: list[BaseComponent]) -> list[BaseComponent]:
        seen: set[str] = set()
        for component in v:
            if component.name in seen:
                raise ValueError(f"Duplicate component name: {component.name}")
            seen.add(component.name)
        return v

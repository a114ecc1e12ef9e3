"""Per-family reconciliation of one declared component.

Every family goes through the same sequence, strictly in order:

1. Reuse the live resource claimed from the inventory, or create a new one
   with a generated name and the component-name tag.
2. Reconcile child resources (service bus queues and topics only).
3. Record the live resource name on the declared component.
4. Grant the developer principal the family's data-plane roles.

Failures propagate to the caller unchanged. Nothing is retried here.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

from azure.mgmt.keyvault.models import Sku as VaultSku
from azure.mgmt.keyvault.models import VaultCreateOrUpdateParameters, VaultProperties
from azure.mgmt.servicebus.models import SBNamespace, SBQueue, SBTopic
from azure.mgmt.storage.models import Sku as StorageSku
from azure.mgmt.storage.models import StorageAccountCreateParameters

from .clients import AzureClients, begin_delete, execute_with_timeout, list_all, run_blocking
from .components import (
    BaseComponent,
    KeyVaultComponent,
    ServiceBusComponent,
    StorageComponent,
)
from .config import COMPONENT_NAME_TAG
from .inventory import LiveResource
from .naming import (
    new_key_vault_name,
    new_service_bus_namespace_name,
    new_storage_account_name,
)
from .roles import (
    KEY_VAULT_ADMINISTRATOR,
    SERVICE_BUS_DATA_OWNER,
    STORAGE_BLOB_DATA_CONTRIBUTOR,
    STORAGE_QUEUE_DATA_CONTRIBUTOR,
    STORAGE_TABLE_DATA_CONTRIBUTOR,
    RoleAssignmentManager,
    role_definition_id,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisioningScope:
    """Where resources live for one pass. Shared read-only by all reconcilers."""

    subscription_id: str
    tenant_id: str | None
    location: str
    resource_group: str


def to_live_resource(resource: Any) -> LiveResource:
    """Convert an SDK resource model into a LiveResource."""
    return LiveResource(
        id=resource.id,
        name=resource.name,
        location=getattr(resource, "location", None),
        tags=dict(getattr(resource, "tags", None) or {}),
    )


class ComponentReconciler(ABC):
    """Reconciles declared components of one resource family."""

    kind: ClassVar[str]
    resource_type: ClassVar[str]
    api_version: ClassVar[str]
    role_guids: ClassVar[tuple[str, ...]]

    def __init__(
        self,
        clients: AzureClients,
        role_manager: RoleAssignmentManager,
        timeout_seconds: int,
    ) -> None:
        self._clients = clients
        self._roles = role_manager
        self._timeout_seconds = timeout_seconds

    @abstractmethod
    async def list_resources(self, scope: ProvisioningScope) -> list[LiveResource]:
        """List every resource of this family in the resource group."""

    @abstractmethod
    async def _create(self, scope: ProvisioningScope, component: Any) -> LiveResource:
        """Create a new tagged resource for the component and wait for it."""

    @abstractmethod
    def _annotate(self, component: Any, resource: LiveResource) -> None:
        """Record the live resource name on the declared component."""

    async def _reconcile_children(
        self, scope: ProvisioningScope, component: Any, resource: LiveResource
    ) -> None:
        return None

    def _tags(self, component: BaseComponent) -> dict[str, str]:
        return {COMPONENT_NAME_TAG: component.name}

    async def reconcile(
        self,
        component: BaseComponent,
        existing: LiveResource | None,
        scope: ProvisioningScope,
        principal_id: str,
    ) -> LiveResource:
        """Bring one declared component in line with the live resource set.

        Args:
            component: The declared component.
            existing: Live resource claimed for this component, if any.
            scope: Resolved subscription, location and resource group.
            principal_id: Principal that receives the data-plane roles.

        Returns:
            The live resource backing the component.
        """
        if existing is None:
            resource = await self._create(scope, component)
        else:
            resource = existing
            logger.info(
                f"Using existing {self.resource_type} {resource.name}",
                extra={"component": component.name, "resource_id": resource.id},
            )

        await self._reconcile_children(scope, component, resource)

        self._annotate(component, resource)

        await self._grant_roles(resource, scope, principal_id)
        return resource

    async def _grant_roles(
        self, resource: LiveResource, scope: ProvisioningScope, principal_id: str
    ) -> None:
        results = await asyncio.gather(
            *(
                self._roles.ensure_role_assignment(
                    resource.id,
                    principal_id,
                    role_definition_id(scope.subscription_id, role_guid),
                )
                for role_guid in self.role_guids
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result


# =============================================================================
# Storage
# =============================================================================


class StorageReconciler(ComponentReconciler):
    kind = "storage"
    resource_type = "Microsoft.Storage/storageAccounts"
    api_version = "2023-01-01"
    role_guids = (
        STORAGE_QUEUE_DATA_CONTRIBUTOR,
        STORAGE_TABLE_DATA_CONTRIBUTOR,
        STORAGE_BLOB_DATA_CONTRIBUTOR,
    )

    async def list_resources(self, scope: ProvisioningScope) -> list[LiveResource]:
        accounts = await list_all(
            self._clients.storage.storage_accounts.list_by_resource_group,
            resource_group_name=scope.resource_group,
        )
        return [to_live_resource(a) for a in accounts]

    async def _create(
        self, scope: ProvisioningScope, component: StorageComponent
    ) -> LiveResource:
        account_name = new_storage_account_name()

        logger.info(
            f"Creating storage account {account_name} in {scope.location}...",
            extra={"component": component.name},
        )

        parameters = StorageAccountCreateParameters(
            sku=StorageSku(name="Standard_GRS"),
            kind="Storage",
            location=scope.location,
            tags=self._tags(component),
        )
        account = await execute_with_timeout(
            lambda: self._clients.storage.storage_accounts.begin_create(
                resource_group_name=scope.resource_group,
                account_name=account_name,
                parameters=parameters,
            ),
            timeout_seconds=self._timeout_seconds,
            operation_name="Create storage account",
        )

        logger.info(f"Storage account {account.name} created.")
        return to_live_resource(account)

    def _annotate(self, component: StorageComponent, resource: LiveResource) -> None:
        component.account_name = resource.name


# =============================================================================
# Service Bus
# =============================================================================


class ServiceBusReconciler(ComponentReconciler):
    kind = "servicebus"
    resource_type = "Microsoft.ServiceBus/namespaces"
    api_version = "2021-11-01"
    role_guids = (SERVICE_BUS_DATA_OWNER,)

    async def list_resources(self, scope: ProvisioningScope) -> list[LiveResource]:
        namespaces = await list_all(
            self._clients.service_bus.namespaces.list_by_resource_group,
            resource_group_name=scope.resource_group,
        )
        return [to_live_resource(ns) for ns in namespaces]

    async def _create(
        self, scope: ProvisioningScope, component: ServiceBusComponent
    ) -> LiveResource:
        namespace_name = new_service_bus_namespace_name()

        logger.info(
            f"Creating service bus namespace {namespace_name} in {scope.location}...",
            extra={"component": component.name},
        )

        parameters = SBNamespace(location=scope.location, tags=self._tags(component))
        namespace = await execute_with_timeout(
            lambda: self._clients.service_bus.namespaces.begin_create_or_update(
                resource_group_name=scope.resource_group,
                namespace_name=namespace_name,
                parameters=parameters,
            ),
            timeout_seconds=self._timeout_seconds,
            operation_name="Create service bus namespace",
        )

        logger.info(f"Service bus namespace {namespace.name} created.")
        return to_live_resource(namespace)

    async def _reconcile_children(
        self,
        scope: ProvisioningScope,
        component: ServiceBusComponent,
        resource: LiveResource,
    ) -> None:
        queues = self._clients.service_bus.queues
        topics = self._clients.service_bus.topics

        existing_queues = await list_all(
            queues.list_by_namespace,
            resource_group_name=scope.resource_group,
            namespace_name=resource.name,
        )
        await self._sync_entities(
            "queue",
            existing_queues,
            component.queue_names,
            lambda name: run_blocking(
                queues.create_or_update,
                resource_group_name=scope.resource_group,
                namespace_name=resource.name,
                queue_name=name,
                parameters=SBQueue(),
            ),
        )

        existing_topics = await list_all(
            topics.list_by_namespace,
            resource_group_name=scope.resource_group,
            namespace_name=resource.name,
        )
        await self._sync_entities(
            "topic",
            existing_topics,
            component.topic_names,
            lambda name: run_blocking(
                topics.create_or_update,
                resource_group_name=scope.resource_group,
                namespace_name=resource.name,
                topic_name=name,
                parameters=SBTopic(),
            ),
        )

    async def _sync_entities(
        self,
        entity_kind: str,
        existing: Iterable[Any],
        declared: Iterable[str],
        create: Callable[[str], Awaitable[Any]],
    ) -> None:
        """Delete undeclared entities without waiting, then create missing ones."""
        declared_names = list(dict.fromkeys(declared))
        existing_names: set[str] = set()

        for entity in existing:
            existing_names.add(entity.name)
            if entity.name not in declared_names:
                logger.info(f"Deleting {entity_kind} {entity.name}")
                await begin_delete(self._clients, entity.id, self.api_version)

        for name in declared_names:
            if name in existing_names:
                continue
            logger.info(f"Creating {entity_kind} {name}...")
            await create(name)
            logger.info(f"{entity_kind.capitalize()} {name} created.")

    def _annotate(self, component: ServiceBusComponent, resource: LiveResource) -> None:
        component.namespace = resource.name


# =============================================================================
# Key Vault
# =============================================================================


class KeyVaultReconciler(ComponentReconciler):
    kind = "keyvault"
    resource_type = "Microsoft.KeyVault/vaults"
    api_version = "2023-07-01"
    role_guids = (KEY_VAULT_ADMINISTRATOR,)

    async def list_resources(self, scope: ProvisioningScope) -> list[LiveResource]:
        vaults = await list_all(
            self._clients.key_vault.vaults.list_by_resource_group,
            resource_group_name=scope.resource_group,
        )
        return [to_live_resource(v) for v in vaults]

    async def _create(
        self, scope: ProvisioningScope, component: KeyVaultComponent
    ) -> LiveResource:
        if not scope.tenant_id:
            raise RuntimeError(
                f"Cannot create key vault for '{component.name}': subscription tenant is unknown"
            )

        vault_name = new_key_vault_name()

        logger.info(
            f"Creating key vault {vault_name} in {scope.location}...",
            extra={"component": component.name},
        )

        parameters = VaultCreateOrUpdateParameters(
            location=scope.location,
            tags=self._tags(component),
            properties=VaultProperties(
                tenant_id=scope.tenant_id,
                sku=VaultSku(family="A", name="standard"),
                enabled_for_template_deployment=True,
                enable_rbac_authorization=True,
            ),
        )
        vault = await execute_with_timeout(
            lambda: self._clients.key_vault.vaults.begin_create_or_update(
                resource_group_name=scope.resource_group,
                vault_name=vault_name,
                parameters=parameters,
            ),
            timeout_seconds=self._timeout_seconds,
            operation_name="Create key vault",
        )

        logger.info(f"Key vault {vault.name} created.")
        return to_live_resource(vault)

    def _annotate(self, component: KeyVaultComponent, resource: LiveResource) -> None:
        component.vault_name = resource.name


RECONCILER_TYPES: tuple[type[ComponentReconciler], ...] = (
    StorageReconciler,
    ServiceBusReconciler,
    KeyVaultReconciler,
)


def build_reconcilers(
    clients: AzureClients,
    role_manager: RoleAssignmentManager,
    timeout_seconds: int,
) -> dict[str, ComponentReconciler]:
    """One reconciler per component kind."""
    return {
        reconciler_type.kind: reconciler_type(clients, role_manager, timeout_seconds)
        for reconciler_type in RECONCILER_TYPES
    }

"""Provisioning pass for the cloud-backed components of a local application.

A pass runs once per application startup, before the application's own
services start:

1. Resolve the subscription, location and resource group
2. Resolve the developer principal from a bearer token
3. Snapshot each resource family into a tag-indexed inventory
4. Reconcile every declared component concurrently, claiming its inventory entry
5. Wait for every reconciliation to finish
6. Start deletion of every unclaimed (orphaned) resource

The live resources, identified by their component-name tag, are the only
record of what exists. No local state is kept between passes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from azure.core.exceptions import AzureError, HttpResponseError
from azure.mgmt.resource.resources.models import ResourceGroup

from .clients import AzureClients, begin_delete, run_blocking
from .components import AZURE_COMPONENT_TYPES, BaseComponent
from .config import MANAGED_RESOURCE_GROUP_TAGS, ConfigurationError, ProvisionerConfig
from .identity import TokenParseError, get_developer_credential, get_user_principal
from .inventory import LiveResource, ResourceInventory
from .reconcilers import ComponentReconciler, ProvisioningScope, build_reconcilers
from .roles import RoleAssignmentManager

logger = logging.getLogger(__name__)


class ComponentProvisioningError(Exception):
    """Raised when one or more component reconciliations fail.

    Sibling reconciliations run to completion regardless; work they finished
    is kept.
    """

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = failures
        names = ", ".join(sorted(failures))
        super().__init__(f"Failed to provision {len(failures)} component(s): {names}")


@dataclass
class ComponentOutcome:
    """Outcome of reconciling one declared component."""

    name: str
    kind: str
    resource_name: str | None = None
    reused: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.resource_name is not None


@dataclass
class ProvisionResult:
    """Result of a single provisioning pass."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    resource_group: str | None = None
    location: str | None = None
    principal_id: str | None = None
    components: list[ComponentOutcome] = field(default_factory=list)
    deletions_started: list[str] = field(default_factory=list)
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return self.error is None


class AzureProvisioner:
    """Ensures Azure resources exist for the declared components of an application.

    The pass is contained: before_start() never raises an Exception, so a
    provisioning failure leaves only the cloud-backed components unprovisioned
    and the rest of the application still starts. Cancelling the task running
    the pass stops it at the next remote call.
    """

    def __init__(self, config: ProvisionerConfig, credential: Any | None = None) -> None:
        """Initialize provisioner with configuration.

        Args:
            config: Validated provisioner configuration.
            credential: Token credential to use. Defaults to the developer
                credential chain, created when a pass needs it.
        """
        self._config = config
        self._credential = credential

    @property
    def config(self) -> ProvisionerConfig:
        return self._config

    async def before_start(self, components: Iterable[Any]) -> ProvisionResult:
        """Run one contained provisioning pass.

        Args:
            components: Components of the application model. Components that are
                not Azure-backed are ignored.

        Returns:
            ProvisionResult describing what happened. Failures are recorded in
            ``error`` and logged, never raised.
        """
        azure_components = [c for c in components if isinstance(c, AZURE_COMPONENT_TYPES)]
        result = ProvisionResult()

        if not azure_components:
            result.end_time = datetime.now(UTC)
            return result

        try:
            await self.provision(azure_components, result)
        except ConfigurationError as e:
            logger.error("Configuration error, Azure components not provisioned", exc_info=e)
            result.error = e
        except TokenParseError as e:
            logger.error("Could not resolve developer principal", exc_info=e)
            result.error = e
        except ComponentProvisioningError as e:
            logger.error(
                "Error provisioning azure components.",
                extra={"failed_components": sorted(e.failures)},
            )
            result.error = e
        except HttpResponseError as e:
            logger.error(
                "Azure API error",
                extra={"error": str(e), "status_code": e.status_code},
                exc_info=e,
            )
            result.error = e
        except AzureError as e:
            logger.error("Azure error", extra={"error": str(e)}, exc_info=e)
            result.error = e
        except Exception as e:
            logger.exception("Error provisioning azure components.")
            result.error = e

        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    async def provision(
        self,
        components: list[BaseComponent],
        result: ProvisionResult | None = None,
    ) -> ProvisionResult:
        """Run one provisioning pass, raising on failure.

        Raises:
            ConfigurationError: If subscription or location is missing, or an
                explicitly configured resource group does not exist.
            TokenParseError: If the developer principal cannot be resolved.
            ComponentProvisioningError: If any component failed to reconcile.
            HttpResponseError: If a scope, identity or listing call fails.
        """
        if result is None:
            result = ProvisionResult()

        subscription_id = self._config.require_subscription_id()
        location = self._config.require_location()

        credential = self._credential or get_developer_credential()
        clients = AzureClients.create(credential, subscription_id)

        scope = await self._resolve_scope(clients, subscription_id, location)
        result.resource_group = scope.resource_group
        result.location = scope.location

        principal_id = await get_user_principal(credential)
        result.principal_id = principal_id

        reconcilers = build_reconcilers(
            clients,
            RoleAssignmentManager(clients),
            self._config.operation_timeout_seconds,
        )

        inventories: dict[str, ResourceInventory] = {}
        for kind, reconciler in reconcilers.items():
            resources = await reconciler.list_resources(scope)
            inventories[kind] = ResourceInventory.from_resources(
                reconciler.resource_type, resources
            )

        tasks: list[asyncio.Task[None]] = []
        outcomes: list[ComponentOutcome] = []
        for component in components:
            # Claim at dispatch so the entry is out of the orphan set before
            # the reconciliation itself has run.
            existing = inventories[component.kind].claim(component.name)
            outcome = ComponentOutcome(
                name=component.name, kind=component.kind, reused=existing is not None
            )
            outcomes.append(outcome)
            tasks.append(
                asyncio.create_task(
                    self._reconcile_component(
                        reconcilers[component.kind],
                        component,
                        existing,
                        scope,
                        principal_id,
                        outcome,
                    )
                )
            )
        result.components = outcomes

        results = await asyncio.gather(*tasks, return_exceptions=True)

        failures: dict[str, BaseException] = {}
        for outcome, task_result in zip(outcomes, results, strict=True):
            if isinstance(task_result, BaseException):
                outcome.error = str(task_result) or type(task_result).__name__
                failures[outcome.name] = task_result
                logger.error(
                    "Failed to provision component",
                    extra={"component": outcome.name, "kind": outcome.kind},
                    exc_info=task_result,
                )
        if failures:
            raise ComponentProvisioningError(failures)

        for kind, reconciler in reconcilers.items():
            for name, resource in inventories[kind].remaining():
                await self._delete_orphan(clients, reconciler, name, resource)
                result.deletions_started.append(resource.id)

        return result

    async def _resolve_scope(
        self, clients: AzureClients, subscription_id: str, location: str
    ) -> ProvisioningScope:
        """Resolve the resource group, creating it when the name is derived.

        An existing group's location wins over the configured one.
        """
        logger.info("Getting subscription...")
        subscription = await run_blocking(
            clients.subscriptions.subscriptions.get, subscription_id=subscription_id
        )
        logger.info(
            f"Subscription: {subscription.display_name} ({subscription.subscription_id})"
        )

        if self._config.resource_group:
            resource_group_name = self._config.resource_group
            create_if_absent = False
        else:
            resource_group_name = self._config.derived_resource_group
            create_if_absent = True

        resource_groups = clients.resources.resource_groups
        exists = await run_blocking(
            resource_groups.check_existence, resource_group_name=resource_group_name
        )

        if exists:
            group = await run_blocking(
                resource_groups.get, resource_group_name=resource_group_name
            )
            location = group.location
            logger.info(f"Using existing resource group {group.name}.")
        elif not create_if_absent:
            raise ConfigurationError(
                f"Resource group '{resource_group_name}' was not found in subscription "
                f"{subscription_id}. Create it or unset AZURE_RESOURCE_GROUP."
            )
        else:
            logger.info(f"Creating resource group {resource_group_name} in {location}...")
            group = await run_blocking(
                resource_groups.create_or_update,
                resource_group_name=resource_group_name,
                parameters=ResourceGroup(
                    location=location, tags=dict(MANAGED_RESOURCE_GROUP_TAGS)
                ),
            )
            logger.info(f"Resource group {group.name} created.")

        return ProvisioningScope(
            subscription_id=subscription_id,
            tenant_id=getattr(subscription, "tenant_id", None),
            location=location,
            resource_group=resource_group_name,
        )

    async def _reconcile_component(
        self,
        reconciler: ComponentReconciler,
        component: BaseComponent,
        existing: LiveResource | None,
        scope: ProvisioningScope,
        principal_id: str,
        outcome: ComponentOutcome,
    ) -> None:
        resource = await reconciler.reconcile(component, existing, scope, principal_id)
        outcome.resource_name = resource.name

    async def _delete_orphan(
        self,
        clients: AzureClients,
        reconciler: ComponentReconciler,
        component_name: str,
        resource: LiveResource,
    ) -> None:
        logger.info(
            f"Deleting {reconciler.resource_type} {resource.id} "
            f"which maps to component name {component_name}.",
            extra={"component": component_name, "resource_id": resource.id},
        )
        await begin_delete(clients, resource.id, reconciler.api_version)

    def _log_result(self, result: ProvisionResult) -> None:
        """Log provisioning result with structured data."""
        extra: dict[str, Any] = {
            "resource_group": result.resource_group,
            "location": result.location,
            "duration_seconds": result.duration_seconds,
            "components": len(result.components),
            "components_failed": sum(1 for c in result.components if c.error),
            "deletions_started": len(result.deletions_started),
        }

        if result.error is not None:
            extra["error"] = str(result.error)
            logger.error("Provisioning failed", extra=extra)
        else:
            logger.info("Provisioning complete", extra=extra)

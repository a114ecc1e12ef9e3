"""Azure SDK clients and helpers for calling them from the event loop.

The management clients are synchronous. Every call is handed to the default
thread pool executor so that the event loop stays free and each remote call
becomes a suspension point. Long-running operations come back as pollers:
creates are waited on under a timeout, deletions are only started.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from azure.mgmt.authorization import AuthorizationManagementClient
from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.resource import ResourceManagementClient, SubscriptionClient
from azure.mgmt.servicebus import ServiceBusManagementClient
from azure.mgmt.storage import StorageManagementClient

logger = logging.getLogger(__name__)


@dataclass
class AzureClients:
    """Management clients bound to one credential and subscription."""

    subscription_id: str
    subscriptions: SubscriptionClient
    resources: ResourceManagementClient
    storage: StorageManagementClient
    service_bus: ServiceBusManagementClient
    key_vault: KeyVaultManagementClient
    authorization: AuthorizationManagementClient

    @classmethod
    def create(cls, credential: Any, subscription_id: str) -> AzureClients:
        return cls(
            subscription_id=subscription_id,
            subscriptions=SubscriptionClient(credential=credential),
            resources=ResourceManagementClient(
                credential=credential, subscription_id=subscription_id
            ),
            storage=StorageManagementClient(
                credential=credential, subscription_id=subscription_id
            ),
            service_bus=ServiceBusManagementClient(
                credential=credential, subscription_id=subscription_id
            ),
            key_vault=KeyVaultManagementClient(
                credential=credential, subscription_id=subscription_id
            ),
            authorization=AuthorizationManagementClient(
                credential=credential, subscription_id=subscription_id
            ),
        )


async def run_blocking(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking SDK call in the default executor."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


async def list_all(func: Callable[..., Any], *args: Any, **kwargs: Any) -> list[Any]:
    """Run a paged SDK listing and materialize every page in the executor."""
    return await run_blocking(lambda: list(func(*args, **kwargs)))


async def execute_with_timeout(
    begin_operation: Callable[[], Any],
    timeout_seconds: int,
    operation_name: str,
) -> Any:
    """Start a long-running operation and wait for its result.

    Args:
        begin_operation: Callable that returns an LROPoller.
        timeout_seconds: Maximum time to wait for operation completion.
        operation_name: Human-readable name for logging.

    Returns:
        The result of the poller operation.

    Raises:
        TimeoutError: If the operation exceeds the timeout.
        HttpResponseError: If Azure API returns an error.
    """
    poller = await run_blocking(begin_operation)

    try:
        return await asyncio.wait_for(
            run_blocking(poller.result),
            timeout=timeout_seconds,
        )
    except TimeoutError:
        logger.error(
            f"{operation_name} timed out",
            extra={"timeout_seconds": timeout_seconds},
        )
        raise


async def begin_delete(clients: AzureClients, resource_id: str, api_version: str) -> Any:
    """Issue a delete for a resource id without waiting for it to complete.

    Returns:
        The deletion poller, which callers leave unpolled.
    """
    return await run_blocking(
        clients.resources.resources.begin_delete_by_id,
        resource_id=resource_id,
        api_version=api_version,
    )

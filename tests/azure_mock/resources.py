"""Mock Azure management state and SDK clients.

Provides in-memory state for resource groups, storage accounts, service bus
namespaces (with queues and topics), key vaults and role assignments, plus
client objects exposing the same method names as the Azure SDK management
clients used by the provisioner.

SDK calls arrive from executor threads, so all state access is locked.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from azure.core.exceptions import HttpResponseError

STORAGE_TYPE = "Microsoft.Storage/storageAccounts"
NAMESPACE_TYPE = "Microsoft.ServiceBus/namespaces"
QUEUE_TYPE = "Microsoft.ServiceBus/namespaces/queues"
TOPIC_TYPE = "Microsoft.ServiceBus/namespaces/topics"
VAULT_TYPE = "Microsoft.KeyVault/vaults"


@dataclass
class MockResource:
    """A resource in mock state. Shaped like the SDK resource models."""

    id: str
    name: str
    type: str
    location: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    properties: Any = None


@dataclass
class MockResourceGroup:
    """A resource group in mock state."""

    name: str
    location: str
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return f"/resourceGroups/{self.name}"


@dataclass
class MockRoleAssignment:
    """A role assignment in mock state."""

    name: str
    scope: str
    principal_id: str
    role_definition_id: str


@dataclass
class MockSubscription:
    """Subscription details returned by the subscriptions API."""

    subscription_id: str
    display_name: str
    tenant_id: str


class MockPoller:
    """Mock Long-Running Operation poller.

    Tracks whether the caller waited for completion, so tests can tell a
    started-only operation from one that blocked the pass.
    """

    def __init__(self, result: Any = None, *, resource_id: str | None = None) -> None:
        self._result = result
        self.resource_id = resource_id
        self.waited = False

    def result(self, timeout: int | None = None) -> Any:
        self.waited = True
        return self._result

    def wait(self, timeout: int | None = None) -> None:
        self.waited = True

    def done(self) -> bool:
        return True

    def status(self) -> str:
        return "Succeeded"


class MockAzureState:
    """In-memory Azure state for one subscription."""

    def __init__(
        self,
        subscription_id: str = "00000000-0000-0000-0000-000000000001",
        tenant_id: str = "11111111-1111-1111-1111-111111111111",
        display_name: str = "Mock Subscription",
    ) -> None:
        self.subscription = MockSubscription(
            subscription_id=subscription_id,
            display_name=display_name,
            tenant_id=tenant_id,
        )
        self._lock = threading.Lock()
        self._resource_groups: dict[str, MockResourceGroup] = {}
        self._resources: dict[str, MockResource] = {}
        self._role_assignments: list[MockRoleAssignment] = []
        self._deletions: list[MockPoller] = []
        self._create_calls: list[tuple[str, str]] = []
        self._failures: dict[str, Exception] = {}
        self._hooks: dict[str, Callable[[], None]] = {}

    # -------------------------------------------------------------------------
    # Failure injection
    # -------------------------------------------------------------------------

    def fail(self, operation: str, error: Exception | None = None) -> None:
        """Make an operation raise, e.g. ``fail("servicebus.namespaces.create")``."""
        self._failures[operation] = error or HttpResponseError(
            message=f"Simulated failure: {operation}"
        )

    def on(self, operation: str, hook: Callable[[], None]) -> None:
        """Run a callable (on the calling executor thread) whenever an operation starts."""
        self._hooks[operation] = hook

    def check(self, operation: str) -> None:
        hook = self._hooks.get(operation)
        if hook is not None:
            hook()
        error = self._failures.get(operation)
        if error is not None:
            raise error

    # -------------------------------------------------------------------------
    # Resource groups
    # -------------------------------------------------------------------------

    def add_resource_group(
        self, name: str, location: str = "westeurope", tags: dict[str, str] | None = None
    ) -> MockResourceGroup:
        group = MockResourceGroup(name=name, location=location, tags=dict(tags or {}))
        with self._lock:
            self._resource_groups[name.lower()] = group
        return group

    def get_resource_group(self, name: str) -> MockResourceGroup | None:
        with self._lock:
            return self._resource_groups.get(name.lower())

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    def resource_id(self, resource_group: str, resource_type: str, name: str) -> str:
        provider, kind = resource_type.split("/", 1)
        return (
            f"/subscriptions/{self.subscription.subscription_id}"
            f"/resourceGroups/{resource_group}/providers/{provider}/{kind}/{name}"
        )

    def add_resource(
        self,
        resource_group: str,
        resource_type: str,
        name: str,
        *,
        location: str = "westeurope",
        tags: dict[str, str] | None = None,
        properties: Any = None,
    ) -> MockResource:
        resource = MockResource(
            id=self.resource_id(resource_group, resource_type, name),
            name=name,
            type=resource_type,
            location=location,
            tags=dict(tags or {}),
            properties=properties,
        )
        with self._lock:
            self._resources[resource.id.lower()] = resource
        return resource

    def add_child(self, parent: MockResource, child_kind: str, name: str) -> MockResource:
        """Add a child resource such as a queue or topic under a namespace."""
        resource = MockResource(
            id=f"{parent.id}/{child_kind}/{name}",
            name=name,
            type=f"{parent.type}/{child_kind}",
        )
        with self._lock:
            self._resources[resource.id.lower()] = resource
        return resource

    def list_resources(
        self, resource_type: str, resource_group: str | None = None, parent_id: str | None = None
    ) -> list[MockResource]:
        with self._lock:
            results = [r for r in self._resources.values() if r.type == resource_type]
        if resource_group is not None:
            marker = f"/resourcegroups/{resource_group.lower()}/"
            results = [r for r in results if marker in r.id.lower()]
        if parent_id is not None:
            prefix = parent_id.lower() + "/"
            results = [r for r in results if r.id.lower().startswith(prefix)]
        return results

    def get_resource(self, resource_id: str) -> MockResource | None:
        with self._lock:
            return self._resources.get(resource_id.lower())

    def record_create(self, resource_type: str, name: str) -> None:
        with self._lock:
            self._create_calls.append((resource_type, name))

    def creates_of(self, resource_type: str) -> list[str]:
        with self._lock:
            return [name for rtype, name in self._create_calls if rtype == resource_type]

    def delete_resource(self, resource_id: str, api_version: str) -> MockPoller:
        poller = MockPoller(resource_id=resource_id)
        with self._lock:
            self._deletions.append(poller)
            prefix = resource_id.lower()
            for key in [k for k in self._resources if k == prefix or k.startswith(prefix + "/")]:
                del self._resources[key]
        return poller

    @property
    def deletions(self) -> list[MockPoller]:
        with self._lock:
            return list(self._deletions)

    @property
    def deleted_ids(self) -> list[str]:
        return [p.resource_id for p in self.deletions if p.resource_id]

    # -------------------------------------------------------------------------
    # Role assignments
    # -------------------------------------------------------------------------

    def add_role_assignment(
        self, name: str, scope: str, principal_id: str, role_definition_id: str
    ) -> MockRoleAssignment:
        assignment = MockRoleAssignment(
            name=name,
            scope=scope,
            principal_id=principal_id,
            role_definition_id=role_definition_id,
        )
        with self._lock:
            self._role_assignments.append(assignment)
        return assignment

    def role_assignments_for(self, scope: str) -> list[MockRoleAssignment]:
        with self._lock:
            return [a for a in self._role_assignments if a.scope.lower() == scope.lower()]

    @property
    def role_assignments(self) -> list[MockRoleAssignment]:
        with self._lock:
            return list(self._role_assignments)


# =============================================================================
# Mock SDK clients
# =============================================================================


class MockSubscriptionClient:
    """Mock of azure.mgmt.subscription.SubscriptionClient."""

    def __init__(self, state: MockAzureState) -> None:
        self.subscriptions = _MockSubscriptionsOperations(state)


class _MockSubscriptionsOperations:
    def __init__(self, state: MockAzureState) -> None:
        self._state = state

    def get(self, subscription_id: str, **_kwargs: Any) -> MockSubscription:
        self._state.check("subscriptions.get")
        if subscription_id != self._state.subscription.subscription_id:
            raise HttpResponseError(message=f"Subscription {subscription_id} not found")
        return self._state.subscription


class MockResourceClient:
    """Mock of azure.mgmt.resource.ResourceManagementClient."""

    def __init__(self, state: MockAzureState) -> None:
        self.resource_groups = _MockResourceGroupsOperations(state)
        self.resources = _MockResourcesOperations(state)


class _MockResourceGroupsOperations:
    def __init__(self, state: MockAzureState) -> None:
        self._state = state

    def check_existence(self, resource_group_name: str, **_kwargs: Any) -> bool:
        self._state.check("resource_groups.check_existence")
        return self._state.get_resource_group(resource_group_name) is not None

    def get(self, resource_group_name: str, **_kwargs: Any) -> MockResourceGroup:
        group = self._state.get_resource_group(resource_group_name)
        if group is None:
            raise HttpResponseError(message=f"Resource group {resource_group_name} not found")
        return group

    def create_or_update(
        self, resource_group_name: str, parameters: Any, **_kwargs: Any
    ) -> MockResourceGroup:
        self._state.check("resource_groups.create")
        return self._state.add_resource_group(
            resource_group_name, location=parameters.location, tags=parameters.tags
        )


class _MockResourcesOperations:
    def __init__(self, state: MockAzureState) -> None:
        self._state = state

    def begin_delete_by_id(self, resource_id: str, api_version: str, **_kwargs: Any) -> MockPoller:
        self._state.check("resources.delete")
        return self._state.delete_resource(resource_id, api_version)


def _create_tagged(
    state: MockAzureState,
    operation: str,
    resource_group: str,
    resource_type: str,
    name: str,
    parameters: Any,
) -> MockPoller:
    state.check(operation)
    state.record_create(resource_type, name)
    resource = state.add_resource(
        resource_group,
        resource_type,
        name,
        location=parameters.location,
        tags=parameters.tags,
        properties=getattr(parameters, "properties", None),
    )
    return MockPoller(resource, resource_id=resource.id)


class MockStorageClient:
    """Mock of azure.mgmt.storage.StorageManagementClient."""

    def __init__(self, state: MockAzureState) -> None:
        self.storage_accounts = _MockStorageAccountsOperations(state)


class _MockStorageAccountsOperations:
    def __init__(self, state: MockAzureState) -> None:
        self._state = state

    def list_by_resource_group(
        self, resource_group_name: str, **_kwargs: Any
    ) -> Iterator[MockResource]:
        self._state.check("storage.list")
        return iter(self._state.list_resources(STORAGE_TYPE, resource_group_name))

    def begin_create(
        self, resource_group_name: str, account_name: str, parameters: Any, **_kwargs: Any
    ) -> MockPoller:
        return _create_tagged(
            self._state,
            "storage.create",
            resource_group_name,
            STORAGE_TYPE,
            account_name,
            parameters,
        )


class MockServiceBusClient:
    """Mock of azure.mgmt.servicebus.ServiceBusManagementClient."""

    def __init__(self, state: MockAzureState) -> None:
        self.namespaces = _MockNamespacesOperations(state)
        self.queues = _MockEntityOperations(state, "queues", QUEUE_TYPE, "queue_name")
        self.topics = _MockEntityOperations(state, "topics", TOPIC_TYPE, "topic_name")


class _MockNamespacesOperations:
    def __init__(self, state: MockAzureState) -> None:
        self._state = state

    def list_by_resource_group(
        self, resource_group_name: str, **_kwargs: Any
    ) -> Iterator[MockResource]:
        self._state.check("servicebus.namespaces.list")
        return iter(self._state.list_resources(NAMESPACE_TYPE, resource_group_name))

    def begin_create_or_update(
        self, resource_group_name: str, namespace_name: str, parameters: Any, **_kwargs: Any
    ) -> MockPoller:
        return _create_tagged(
            self._state,
            "servicebus.namespaces.create",
            resource_group_name,
            NAMESPACE_TYPE,
            namespace_name,
            parameters,
        )


class _MockEntityOperations:
    """Queues or topics under a namespace."""

    def __init__(
        self, state: MockAzureState, child_kind: str, resource_type: str, name_arg: str
    ) -> None:
        self._state = state
        self._child_kind = child_kind
        self._resource_type = resource_type
        self._name_arg = name_arg

    def _namespace(self, resource_group_name: str, namespace_name: str) -> MockResource:
        namespace_id = self._state.resource_id(resource_group_name, NAMESPACE_TYPE, namespace_name)
        namespace = self._state.get_resource(namespace_id)
        if namespace is None:
            raise HttpResponseError(message=f"Namespace {namespace_name} not found")
        return namespace

    def list_by_namespace(
        self, resource_group_name: str, namespace_name: str, **_kwargs: Any
    ) -> Iterator[MockResource]:
        self._state.check(f"servicebus.{self._child_kind}.list")
        namespace = self._namespace(resource_group_name, namespace_name)
        return iter(self._state.list_resources(self._resource_type, parent_id=namespace.id))

    def create_or_update(
        self, resource_group_name: str, namespace_name: str, parameters: Any, **kwargs: Any
    ) -> MockResource:
        self._state.check(f"servicebus.{self._child_kind}.create")
        name = kwargs[self._name_arg]
        namespace = self._namespace(resource_group_name, namespace_name)
        self._state.record_create(self._resource_type, name)
        return self._state.add_child(namespace, self._child_kind, name)


class MockKeyVaultClient:
    """Mock of azure.mgmt.keyvault.KeyVaultManagementClient."""

    def __init__(self, state: MockAzureState) -> None:
        self.vaults = _MockVaultsOperations(state)


class _MockVaultsOperations:
    def __init__(self, state: MockAzureState) -> None:
        self._state = state

    def list_by_resource_group(
        self, resource_group_name: str, **_kwargs: Any
    ) -> Iterator[MockResource]:
        self._state.check("keyvault.list")
        return iter(self._state.list_resources(VAULT_TYPE, resource_group_name))

    def begin_create_or_update(
        self, resource_group_name: str, vault_name: str, parameters: Any, **_kwargs: Any
    ) -> MockPoller:
        return _create_tagged(
            self._state,
            "keyvault.create",
            resource_group_name,
            VAULT_TYPE,
            vault_name,
            parameters,
        )


class MockAuthorizationClient:
    """Mock of azure.mgmt.authorization.AuthorizationManagementClient."""

    def __init__(self, state: MockAzureState) -> None:
        self.role_assignments = _MockRoleAssignmentsOperations(state)


class _MockRoleAssignmentsOperations:
    def __init__(self, state: MockAzureState) -> None:
        self._state = state

    def list_for_scope(self, scope: str, **_kwargs: Any) -> Iterator[MockRoleAssignment]:
        self._state.check("role_assignments.list")
        return iter(self._state.role_assignments_for(scope))

    def create(
        self, scope: str, role_assignment_name: str, parameters: Any, **_kwargs: Any
    ) -> MockRoleAssignment:
        self._state.check("role_assignments.create")
        return self._state.add_role_assignment(
            name=role_assignment_name,
            scope=scope,
            principal_id=parameters.principal_id,
            role_definition_id=parameters.role_definition_id,
        )

"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import SUBSCRIPTION_ID, TENANT_ID, MockAzureState  # noqa: E402
from azure_mock.resources import (  # noqa: E402
    MockAuthorizationClient,
    MockKeyVaultClient,
    MockResourceClient,
    MockServiceBusClient,
    MockStorageClient,
    MockSubscriptionClient,
)

from provisioner.clients import AzureClients  # noqa: E402
from provisioner.reconcilers import ProvisioningScope  # noqa: E402

RESOURCE_GROUP = "devbox-shop-rg"


@pytest.fixture
def azure_state() -> MockAzureState:
    """Fresh mock Azure state with the test resource group present."""
    state = MockAzureState(subscription_id=SUBSCRIPTION_ID, tenant_id=TENANT_ID)
    state.add_resource_group(RESOURCE_GROUP, location="westeurope")
    return state


@pytest.fixture
def azure_clients(azure_state: MockAzureState) -> AzureClients:
    """AzureClients wired to the mock state without patching constructors."""
    return AzureClients(
        subscription_id=SUBSCRIPTION_ID,
        subscriptions=MockSubscriptionClient(azure_state),
        resources=MockResourceClient(azure_state),
        storage=MockStorageClient(azure_state),
        service_bus=MockServiceBusClient(azure_state),
        key_vault=MockKeyVaultClient(azure_state),
        authorization=MockAuthorizationClient(azure_state),
    )


@pytest.fixture
def scope() -> ProvisioningScope:
    return ProvisioningScope(
        subscription_id=SUBSCRIPTION_ID,
        tenant_id=TENANT_ID,
        location="westeurope",
        resource_group=RESOURCE_GROUP,
    )

"""Azure API Mock for Integration Testing.

This module provides an in-memory implementation of the Azure management
APIs the provisioner calls, so provisioning passes can run without Azure
connectivity.

Key Features:
- In-memory resource groups, resources, queues, topics and role assignments
- Deletion pollers that record whether anyone waited on them
- Failure injection per operation
- JWT-shaped developer tokens carrying an object id claim

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext() as ctx:
        result = await AzureProvisioner(config).before_start(components)

        # Assert on mock state
        assert ctx.state.creates_of(STORAGE_TYPE) == [...]
"""

from .context import SUBSCRIPTION_ID, TENANT_ID, MockAzureContext, mock_azure_context
from .credential import (
    DEFAULT_PRINCIPAL_ID,
    MockDeveloperCredential,
    create_mock_credential,
    make_token,
)
from .resources import (
    NAMESPACE_TYPE,
    QUEUE_TYPE,
    STORAGE_TYPE,
    TOPIC_TYPE,
    VAULT_TYPE,
    MockAzureState,
    MockPoller,
    MockResource,
)

__all__ = [
    "DEFAULT_PRINCIPAL_ID",
    "NAMESPACE_TYPE",
    "QUEUE_TYPE",
    "STORAGE_TYPE",
    "SUBSCRIPTION_ID",
    "TENANT_ID",
    "TOPIC_TYPE",
    "VAULT_TYPE",
    "MockAzureContext",
    "MockAzureState",
    "MockDeveloperCredential",
    "MockPoller",
    "MockResource",
    "create_mock_credential",
    "make_token",
    "mock_azure_context",
]

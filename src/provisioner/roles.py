"""Idempotent role grants for the developer principal.

Role assignments are keyed by a random assignment name, not by the
(scope, principal, role) triple. Creating blindly would always succeed and
stack up duplicate grants, so existing assignments on the scope are listed
and compared first.

The list-then-create sequence is not atomic. Two overlapping grants for the
same triple can both create an assignment; duplicate grants of the same role
are inert, so no locking is attempted.
"""

from __future__ import annotations

import logging
import uuid

from azure.mgmt.authorization.models import RoleAssignmentCreateParameters

from .clients import AzureClients, list_all, run_blocking

logger = logging.getLogger(__name__)

# Well-known Azure built-in role GUIDs, identical across all tenants
# https://learn.microsoft.com/azure/role-based-access-control/built-in-roles
STORAGE_QUEUE_DATA_CONTRIBUTOR = "974c5e8b-45b9-4653-ba55-5f855dd0fb88"
STORAGE_TABLE_DATA_CONTRIBUTOR = "0a9a7e1f-b9d0-4cc4-a60d-0319b160aaa3"
STORAGE_BLOB_DATA_CONTRIBUTOR = "ba92f5b4-2d11-453d-a403-e96b0029c9fe"
SERVICE_BUS_DATA_OWNER = "090c5cfd-751d-490a-894a-3ce6f1109419"
KEY_VAULT_ADMINISTRATOR = "00482a5a-887f-4fb3-b363-3b7fe8e74483"


def role_definition_id(subscription_id: str, role_guid: str) -> str:
    """Fully-qualified role definition id under the subscription."""
    return (
        f"/subscriptions/{subscription_id}"
        f"/providers/Microsoft.Authorization/roleDefinitions/{role_guid}"
    )


def _same_id(left: str | None, right: str) -> bool:
    # ARM ids and object ids compare case-insensitively
    return left is not None and left.lower() == right.lower()


class RoleAssignmentManager:
    """Grants roles on individual resources, skipping grants that already exist."""

    def __init__(self, clients: AzureClients) -> None:
        self._clients = clients

    async def ensure_role_assignment(
        self,
        resource_id: str,
        principal_id: str,
        role_definition_id: str,
    ) -> bool:
        """Grant a role to a principal on a resource unless already granted.

        Args:
            resource_id: Scope of the assignment.
            principal_id: Object id of the principal.
            role_definition_id: Fully-qualified role definition id.

        Returns:
            True if a new assignment was created, False if one already existed.

        Raises:
            HttpResponseError: If listing or creating the assignment fails.
        """
        assignments = await list_all(
            self._clients.authorization.role_assignments.list_for_scope,
            scope=resource_id,
        )

        for assignment in assignments:
            if _same_id(assignment.principal_id, principal_id) and _same_id(
                assignment.role_definition_id, role_definition_id
            ):
                logger.debug(
                    "Role already assigned",
                    extra={
                        "resource_id": resource_id,
                        "principal_id": principal_id,
                        "role_definition_id": role_definition_id,
                    },
                )
                return False

        logger.info(
            f"Assigning role {role_definition_id} to {principal_id}...",
            extra={"resource_id": resource_id},
        )

        await run_blocking(
            self._clients.authorization.role_assignments.create,
            scope=resource_id,
            role_assignment_name=str(uuid.uuid4()),
            parameters=RoleAssignmentCreateParameters(
                role_definition_id=role_definition_id,
                principal_id=principal_id,
            ),
        )

        logger.info(
            f"Role {role_definition_id} assigned to {principal_id}.",
            extra={"resource_id": resource_id},
        )
        return True

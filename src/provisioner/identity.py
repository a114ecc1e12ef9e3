"""Caller identity resolution.

The principal that receives role assignments is the developer signed in to
the local credential chain. Its object id is read from the ``oid`` claim of a
bearer token issued for that identity. The signature is not validated; trust
is delegated to the token issuer.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import uuid
from typing import Any

from azure.identity import DefaultAzureCredential

logger = logging.getLogger(__name__)

# Scope the developer token is requested for
TOKEN_SCOPE = "https://graph.windows.net/.default"

PRINCIPAL_CLAIM = "oid"

_MISSING = object()


class TokenParseError(Exception):
    """Raised when a bearer token cannot be decoded into claims."""

    pass


def get_developer_credential() -> DefaultAzureCredential:
    """Get the credential chain for the local developer identity.

    Resolves, in order, environment credentials, workload and managed
    identity, and developer tool sign-ins such as the Azure CLI.
    """
    logger.info("Using default Azure credential chain")
    return DefaultAzureCredential()


def _to_standard_base64(segment: str) -> str:
    converted = segment.replace("_", "/").replace("-", "+")
    match len(segment) % 4:
        case 2:
            converted += "=="
        case 3:
            converted += "="
    return converted


def _keep_first(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    # json.loads keeps the last duplicate key by default
    obj: dict[str, Any] = {}
    for key, value in pairs:
        obj.setdefault(key, value)
    return obj


def _find_claim(node: Any, claim: str) -> Any:
    """Depth-first search for a property name, in document order."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == claim:
                return value
            found = _find_claim(value, claim)
            if found is not _MISSING:
                return found
    elif isinstance(node, list):
        for item in node:
            found = _find_claim(item, claim)
            if found is not _MISSING:
                return found
    return _MISSING


def parse_principal_id(token: str) -> str:
    """Extract the principal object id from a bearer token.

    Args:
        token: A three-segment ``header.claims.signature`` token.

    Returns:
        The value of the ``oid`` claim, or an empty string if the claims
        carry no such property.

    Raises:
        TokenParseError: If the token is not three segments, the claims
            segment is not valid URL-safe base64 JSON, or ``oid`` is not a string.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenParseError(f"Token must have 3 segments, found {len(parts)}")

    try:
        payload = base64.b64decode(_to_standard_base64(parts[1]), validate=True)
    except (binascii.Error, ValueError) as e:
        raise TokenParseError(f"Token claims segment is not valid base64: {e}") from e

    try:
        claims = json.loads(payload, object_pairs_hook=_keep_first)
    except ValueError as e:
        raise TokenParseError(f"Token claims segment is not valid JSON: {e}") from e

    value = _find_claim(claims, PRINCIPAL_CLAIM)
    if value is _MISSING:
        return ""
    if not isinstance(value, str):
        raise TokenParseError(f"Claim '{PRINCIPAL_CLAIM}' must be a string")
    return value


async def get_user_principal(credential: Any) -> str:
    """Acquire a token for the developer identity and return its principal id.

    Raises:
        TokenParseError: If the token is malformed or carries no valid object id.
        azure.core.exceptions.ClientAuthenticationError: If no token can be acquired.
    """
    loop = asyncio.get_event_loop()
    access_token = await loop.run_in_executor(None, credential.get_token, TOKEN_SCOPE)

    principal_id = parse_principal_id(access_token.token)
    try:
        uuid.UUID(principal_id)
    except ValueError as e:
        raise TokenParseError(
            f"Token claim '{PRINCIPAL_CLAIM}' is not a valid object id: {principal_id!r}"
        ) from e

    logger.info("Resolved developer principal", extra={"principal_id": principal_id})
    return principal_id

"""Globally unique resource names for each resource family.

Storage accounts, service bus namespaces and key vaults all have DNS-visible
names, so new names are drawn from random identifiers rather than from the
component name. The component name travels in a tag instead.
"""

from __future__ import annotations

import re
import uuid

# Storage account: 3-24 characters, lowercase letters and digits only
STORAGE_ACCOUNT_NAME_PATTERN = r"^[a-z0-9]{3,24}$"
STORAGE_ACCOUNT_NAME_LENGTH = 20

# Service bus namespace: starts with a letter, then letters, digits and hyphens
SERVICE_BUS_NAMESPACE_PATTERN = r"^[a-zA-Z][a-zA-Z0-9-]*$"

# Key vault: 3-24 characters, starts with a letter, ends with a letter or digit,
# no consecutive hyphens
KEY_VAULT_NAME_PATTERN = r"^[a-zA-Z](?!.*--)[a-zA-Z0-9-]{1,22}[a-zA-Z0-9]$"
KEY_VAULT_NAME_PREFIX = "v"
KEY_VAULT_RANDOM_LENGTH = 20


def new_storage_account_name() -> str:
    return uuid.uuid4().hex[:STORAGE_ACCOUNT_NAME_LENGTH]


def new_service_bus_namespace_name() -> str:
    """Full hyphenated identifier, re-drawn until it starts with a letter."""
    while True:
        candidate = str(uuid.uuid4())
        if candidate[0].isalpha():
            return candidate


def new_key_vault_name() -> str:
    return f"{KEY_VAULT_NAME_PREFIX}{uuid.uuid4().hex[:KEY_VAULT_RANDOM_LENGTH]}"


def is_valid_storage_account_name(name: str) -> bool:
    return re.match(STORAGE_ACCOUNT_NAME_PATTERN, name) is not None


def is_valid_service_bus_namespace_name(name: str) -> bool:
    return re.match(SERVICE_BUS_NAMESPACE_PATTERN, name) is not None


def is_valid_key_vault_name(name: str) -> bool:
    return re.match(KEY_VAULT_NAME_PATTERN, name) is not None

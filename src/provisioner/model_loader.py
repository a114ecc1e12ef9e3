"""Application model loading with validation.

SECURITY: File size is checked before reading. Input validation is performed
at the boundary so a malformed model never reaches the provisioner.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .components import AppModel
from .config import MAX_MODEL_FILE_SIZE_BYTES

logger = logging.getLogger(__name__)


class ModelLoadError(Exception):
    """Raised when model loading or validation fails."""

    pass


def load_app_model(model_path: Path) -> AppModel:
    """Load and validate an application model from YAML.

    The file holds a mapping with ``name`` and a ``components`` list; each
    component carries a ``kind`` of ``storage``, ``servicebus`` or ``keyvault``.

    Args:
        model_path: Path to the YAML file.

    Returns:
        Validated application model.

    Raises:
        ModelLoadError: If the file cannot be read or fails validation.
    """
    if not model_path.exists():
        raise ModelLoadError(f"Model file not found: {model_path}")

    try:
        file_size = model_path.stat().st_size
    except OSError as e:
        raise ModelLoadError(f"Failed to stat model file {model_path}: {e}") from e

    if file_size > MAX_MODEL_FILE_SIZE_BYTES:
        raise ModelLoadError(
            f"Model file exceeds maximum size of {MAX_MODEL_FILE_SIZE_BYTES} bytes: {model_path}"
        )

    try:
        content = model_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ModelLoadError(f"Failed to read model file {model_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ModelLoadError(f"Invalid YAML in {model_path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise ModelLoadError(f"Model file must contain a YAML mapping: {model_path}")

    try:
        model = AppModel.model_validate(raw_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise ModelLoadError(f"Validation failed for {model_path}:\n{error_list}") from e

    logger.info(
        "Loaded application model '%s' with %d components from %s",
        model.name,
        len(model.components),
        model_path,
    )
    return model

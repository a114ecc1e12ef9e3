"""Entry points for running a provisioning pass from the command line.

A pass loads the application model, provisions its Azure components and
prints the connection coordinates that would be injected into the
application's processes.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from .components import AppModel
from .config import ConfigurationError, ProvisionerConfig
from .identity import get_developer_credential, get_user_principal
from .model_loader import ModelLoadError, load_app_model
from .provisioner import AzureProvisioner

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured logging with JSON output."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def provision(model_path: Path) -> tuple[int, AppModel | None]:
    """Load an application model and run one contained provisioning pass.

    Returns:
        Exit code (0 for success, non-zero for failure) and the model, whose
        components carry their assigned resource names after the pass.
    """
    logger = logging.getLogger(__name__)

    try:
        config = ProvisionerConfig.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1, None

    try:
        model = load_app_model(model_path)
    except ModelLoadError as e:
        logger.error("Application model loading failed", extra={"error": str(e)})
        return 1, None

    logger.info(
        "Provisioning Azure components",
        extra={
            "app": model.name,
            "subscription_id": config.subscription_id,
            "location": config.location,
        },
    )

    result = await AzureProvisioner(config).before_start(model.components)
    return (0 if result.success else 1), model


async def whoami() -> str:
    """Resolve the principal id of the developer credential."""
    return await get_user_principal(get_developer_credential())

"""Configuration and logging setup for the ClasseViva client."""

import json
import logging
import os
import pathlib

import pydantic
import structlog

from . import enums, restapi

CONFIG_ENV_VAR = "CLASSEVIVA_CONFIG_PATH"
logger = structlog.get_logger(__name__)


class ClientConfig(pydantic.BaseModel):
    """Configuration for a ClasseViva client."""

    username: str = pydantic.Field("", description="ClasseViva username")
    password: pydantic.SecretStr = pydantic.Field(
        pydantic.SecretStr(""),
        description="ClasseViva password",
    )
    region: enums.Region = pydantic.Field(
        enums.Region.ITALY,
        description="Country instance of the platform",
    )
    app: str = pydantic.Field(
        enums.App.STUDENTS.value,
        description="Application identifier sent in the User-Agent header",
    )
    cache_file: str | None = pydantic.Field(
        None,
        description="Path of the session cache file",
    )
    timeout: float = pydantic.Field(
        restapi.DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    renewal_interval: float = pydantic.Field(
        restapi.RENEWAL_INTERVAL,
        description="Seconds between automatic session renewals",
        gt=0,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str | None = None) -> ClientConfig:
    """Load configuration from a JSON file.

    Args:
        config_path: Path of the file; defaults to the value of the
            ``CLASSEVIVA_CONFIG_PATH`` environment variable.

    Raises:
        FileNotFoundError: If no file exists at the resolved path.
        pydantic.ValidationError: If the file content is invalid.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, "classeviva.json")
    path = pathlib.Path(resolved_path)
    if not path.exists():
        msg = f"Configuration file not found: {resolved_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    return ClientConfig(**data)


def create_client(config: ClientConfig) -> restapi.ClassevivaClient:
    """Construct a client from validated config."""
    client = restapi.ClassevivaClient(
        username=config.username,
        password=config.password.get_secret_value(),
        region=config.region,
        app=config.app,
        cache_file=config.cache_file,
        timeout=config.timeout,
        renewal_interval=config.renewal_interval,
    )
    logger.info(
        "Created ClasseViva client",
        base_url=client.base_url,
        cache_file=str(client.cache_file),
    )
    return client


def create_client_from_file(config_path: str | None = None) -> restapi.ClassevivaClient:
    """Create a client using a config path or the environment default."""
    config = load_config(config_path)
    configure_logging(config.log_level)
    return create_client(config)

"""Configuration for the remote progress channel and copy tuning."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from e2sparse.storage.exceptions import ConfigError


CONFIG_PATH = Path(os.environ.get("E2SPARSE_CONFIG_PATH", "/etc/e2sparse.yml"))

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_STOMP_PORT = 61613
DEFAULT_STOMP_TIMEOUT = 10.0
DEFAULT_BUFFER_SIZE_MB = 16

SAMPLE_CONFIG: dict[str, Any] = {
    "stomp": {
        "server": "stompserver.domain.tld",
        "port": DEFAULT_STOMP_PORT,
        "user": "username",
        "password": "secure_enough_password",
    }
}

SAMPLE_CONFIG_HEADER = (
    "# sample config - you can ignore this if you do not intend to publish "
    "progress over STOMP\n"
)


@dataclass(frozen=True)
class StompConfig:
    server: str
    port: int = DEFAULT_STOMP_PORT
    user: str | None = None
    password: str | None = None
    timeout: float = DEFAULT_STOMP_TIMEOUT


def get_buffer_size_mb(default: int = DEFAULT_BUFFER_SIZE_MB) -> int:
    """Buffer size in MiB from ``E2SPARSE_BUFFER_MB``, falling back to ``default``."""
    raw = os.environ.get("E2SPARSE_BUFFER_MB")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_publish_config(path: Path | None = None) -> StompConfig:
    """Load the ``stomp`` section of the YAML configuration file.

    Raises:
        ConfigError: If the file is missing, unparseable or has no server
    """
    path = path or CONFIG_PATH
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as error:
        raise ConfigError(
            f"cannot load or parse stomp config {path}: {error}", path=str(path)
        ) from error

    section = data.get("stomp") if isinstance(data, dict) else None
    if not isinstance(section, dict) or not section.get("server"):
        raise ConfigError(f"no stomp server configured in {path}", path=str(path))

    try:
        port = int(section.get("port") or DEFAULT_STOMP_PORT)
    except (TypeError, ValueError) as error:
        raise ConfigError(
            f"invalid stomp port in {path}: {section.get('port')!r}", path=str(path)
        ) from error

    try:
        timeout = float(section.get("timeout") or DEFAULT_STOMP_TIMEOUT)
    except (TypeError, ValueError) as error:
        raise ConfigError(
            f"invalid stomp timeout in {path}: {section.get('timeout')!r}", path=str(path)
        ) from error
    if timeout <= 0:
        raise ConfigError(f"invalid stomp timeout in {path}: {timeout}", path=str(path))

    user = section.get("user")
    password = section.get("password")
    return StompConfig(
        server=str(section["server"]),
        port=port,
        user=str(user) if user is not None else None,
        password=str(password) if password is not None else None,
        timeout=timeout,
    )


def write_sample_config(path: Path | None = None) -> bool:
    """Write a sample configuration file unless one already exists.

    Returns:
        True if the sample was written, False if it existed or could not be written
    """
    path = path or CONFIG_PATH
    if path.exists():
        return False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            SAMPLE_CONFIG_HEADER
            + yaml.safe_dump(SAMPLE_CONFIG, default_flow_style=False, sort_keys=True),
            encoding="utf-8",
        )
    except OSError:
        return False
    return True

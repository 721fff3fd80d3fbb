"""Flat JSON storage for the global configuration and per-client overrides.

The global configuration is one document (``config.json``); every client has
its own ``clients/<client-id>.json``. Documents are always read and written
whole.
"""
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from invoice_analyzer.core.client_cache import API_KEY_ENV_VAR
from invoice_analyzer.core.exceptions import ConfigError
from invoice_analyzer.core.models import AnalysisConfig, ClientConfig

logger = logging.getLogger(__name__)

CLIENT_ID_RE = re.compile(r"^[a-z0-9-]+$")


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for issue in error.errors():
        location = ".".join(str(p) for p in issue["loc"])
        parts.append(f"{location}: {issue['msg']}" if location else issue["msg"])
    return "; ".join(parts)


def _read_document(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError("file not found", source=str(path)) from e
    except OSError as e:
        raise ConfigError(f"unable to read file: {e}", source=str(path)) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", source=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigError("top level must be a JSON object", source=str(path))
    return data


def _write_document(path: Path, model: BaseModel) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = model.model_dump(mode="json", by_alias=True, exclude_none=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    os.replace(tmp_path, path)


def parse_config(data: dict[str, Any], source: str = "config") -> AnalysisConfig:
    """Validate a global configuration document.

    Raises:
        ConfigError: If the document does not match the schema
    """
    try:
        return AnalysisConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_describe_validation_error(e), source=source) from e


def parse_client_config(client_id: str, data: dict[str, Any]) -> ClientConfig:
    """Validate one client document.

    Raises:
        ConfigError: If the document does not match the schema
    """
    try:
        return ClientConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_describe_validation_error(e), source=f"client '{client_id}'") from e


def load_config(path: Path | str) -> AnalysisConfig:
    """Load and validate the global configuration document."""
    path = Path(path)
    config = parse_config(_read_document(path), source=str(path))
    logger.debug(
        f"Loaded config {path.name}: {len(config.field_definitions)} fields, "
        f"{len(config.tag_definitions)} tags"
    )
    return config


def save_config(config: AnalysisConfig, path: Path | str) -> None:
    """Write the global configuration document."""
    _write_document(Path(path), config)


def validate_client_id(client_id: str) -> None:
    """Client ids double as file names: lowercase alphanumerics and hyphens."""
    if not CLIENT_ID_RE.match(client_id or ""):
        raise ConfigError("Client ID must be lowercase alphanumeric with hyphens only", source=f"client '{client_id}'")


def load_client_configs(clients_dir: Path | str) -> dict[str, ClientConfig]:
    """Load every ``*.json`` client document, keyed by file stem.

    A missing directory means no clients are configured.
    """
    clients_dir = Path(clients_dir)
    if not clients_dir.is_dir():
        return {}

    clients = {}
    for path in sorted(clients_dir.glob("*.json")):
        client_id = path.stem
        clients[client_id] = parse_client_config(client_id, _read_document(path))
    return clients


def load_enabled_client_configs(clients_dir: Path | str) -> dict[str, ClientConfig]:
    """Like :func:`load_client_configs`, keeping only enabled clients."""
    return {cid: client for cid, client in load_client_configs(clients_dir).items() if client.enabled}


def load_client_config(clients_dir: Path | str, client_id: str) -> ClientConfig:
    """Load one client document.

    Raises:
        ConfigError: If the client does not exist or is malformed
    """
    validate_client_id(client_id)
    path = Path(clients_dir) / f"{client_id}.json"
    if not path.exists():
        raise ConfigError(f"Client \"{client_id}\" not found", source=str(path))
    return parse_client_config(client_id, _read_document(path))


def save_client_config(
    clients_dir: Path | str,
    client_id: str,
    client: ClientConfig,
    create: bool = False,
) -> Path:
    """Create or update a client document.

    Args:
        clients_dir: Directory holding client documents
        client_id: Client identifier, used as the file name
        client: Client document
        create: True to create a new client, False to update an existing one

    Returns:
        Path of the written document
    """
    validate_client_id(client_id)
    path = Path(clients_dir) / f"{client_id}.json"

    if create and path.exists():
        raise ConfigError(f"Client \"{client_id}\" already exists", source=str(path))
    if not create and not path.exists():
        raise ConfigError(f"Client \"{client_id}\" not found", source=str(path))

    _write_document(path, client)
    return path


def resolve_api_key(client: Optional[ClientConfig] = None, default_api_key: Optional[str] = None) -> str:
    """Pick the API key for a client.

    Order: the client's own environment variable, ``default_api_key``, then
    ``GEMINI_API_KEY``.

    Raises:
        ConfigError: If no key is found
    """
    if client and client.api_key_env_var and os.getenv(client.api_key_env_var):
        return os.environ[client.api_key_env_var]

    key = default_api_key or os.getenv(API_KEY_ENV_VAR)
    if key:
        return key

    name = client.name if client else "default"
    env_var = (client.api_key_env_var if client else None) or API_KEY_ENV_VAR
    raise ConfigError(f"No API key found for client \"{name}\". Set {env_var} environment variable.", source="credentials")

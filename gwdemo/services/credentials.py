from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from jsonschema import ValidationError
from jsonschema import validate as jsonschema_validate

from gwdemo.services.errors import AuthenticationError

logger = logging.getLogger(__name__)

DEFAULT_AUTH_ENV_VAR = "AZURE_AUTH_LOCATION"

SDK_AUTH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "clientId": {"type": "string", "minLength": 1},
        "clientSecret": {"type": "string", "minLength": 1},
        "tenantId": {"type": "string", "minLength": 1},
        "subscriptionId": {"type": "string", "minLength": 1},
    },
    "required": ["clientId", "clientSecret", "tenantId", "subscriptionId"],
}

# Legacy ".azureauth" property names
_PROPERTY_KEYS = {
    "client": "client_id",
    "key": "client_secret",
    "tenant": "tenant_id",
    "subscription": "subscription_id",
}


@dataclass(frozen=True)
class ServicePrincipalCredentials:
    client_id: str
    client_secret: str = field(repr=False)
    tenant_id: str
    subscription_id: str


def _parse_sdk_auth_json(text: str, path: Path) -> ServicePrincipalCredentials:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise AuthenticationError(f"Invalid JSON in credential file {path}: {exc.msg}") from exc
    try:
        jsonschema_validate(instance=payload, schema=SDK_AUTH_SCHEMA)
    except ValidationError as exc:
        raise AuthenticationError(f"Credential file {path} is invalid: {exc.message}") from exc
    return ServicePrincipalCredentials(
        client_id=payload["clientId"],
        client_secret=payload["clientSecret"],
        tenant_id=payload["tenantId"],
        subscription_id=payload["subscriptionId"],
    )


def _parse_properties(text: str, path: Path) -> ServicePrincipalCredentials:
    values: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            raise AuthenticationError(f"Malformed line in credential file {path}: expected key=value")
        target = _PROPERTY_KEYS.get(key.strip())
        if target is not None:
            # Java-style properties escape ':' in URLs; values we use never need it
            values[target] = value.strip().replace("\\:", ":")

    missing = sorted(key for key, target in _PROPERTY_KEYS.items() if not values.get(target))
    if missing:
        raise AuthenticationError(f"Credential file {path} is missing: {', '.join(missing)}")
    return ServicePrincipalCredentials(**values)


def load_credentials(path: Path) -> ServicePrincipalCredentials:
    """Load service principal credentials from an SDK auth JSON or legacy properties file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise AuthenticationError(f"Unable to read credential file {path}: {exc.strerror or exc}") from exc

    stripped = text.lstrip()
    if not stripped:
        raise AuthenticationError(f"Credential file {path} is empty")
    if stripped.startswith("{"):
        credentials = _parse_sdk_auth_json(stripped, path)
    else:
        credentials = _parse_properties(text, path)
    logger.debug("Loaded credentials for client_id=%s from %s", credentials.client_id, path)
    return credentials


def credentials_from_env(
    env_var: str = DEFAULT_AUTH_ENV_VAR,
    *,
    environ: Mapping[str, str] | None = None,
) -> ServicePrincipalCredentials:
    env = os.environ if environ is None else environ
    location = env.get(env_var, "").strip()
    if not location:
        raise AuthenticationError(f"Environment variable {env_var} is not set")
    return load_credentials(Path(location).expanduser())

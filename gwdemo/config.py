from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import random
from typing import Any

from gwdemo.services.credentials import DEFAULT_AUTH_ENV_VAR
from gwdemo.services.naming import random_resource_name

RESOURCE_GROUP_PREFIX = "rgNEAGS"
RESOURCE_GROUP_NAME_LEN = 15
PUBLIC_IP_PREFIX = "pip-"
PUBLIC_IP_NAME_LEN = 18

DEFAULT_BACKEND_IPS = ("11.1.1.1", "11.1.1.2", "11.1.1.3", "11.1.1.4")


@dataclass(frozen=True)
class DemoConfig:
    resource_group_name: str
    public_ip_name: str
    gateway_name: str = "myFirstAppGateway"
    region: str = "eastus"
    auth_env_var: str = DEFAULT_AUTH_ENV_VAR
    certificate_path: Path = Path("myTest._pfx")
    certificate_password: str = field(default="Abc123", repr=False)
    certificate_name: str = "appgw-cert"
    backend_pool_name: str = "backend-pool"
    backend_ip_addresses: tuple[str, ...] = DEFAULT_BACKEND_IPS
    host_name: str = "www.contoso.com"
    initial_rule_name: str = "HTTP-80-to-8080"
    tls_rule_name: str = "HTTPs-1443-to-8080"
    frontend_http_port: int = 80
    frontend_https_port: int = 1443
    backend_port: int = 8080
    capacity: int = 2


def build_config(*, seed: int | None = None, **overrides: Any) -> DemoConfig:
    """Build a run configuration with freshly generated resource names.

    Passing ``seed`` makes the generated names reproducible. Explicit
    ``resource_group_name``/``public_ip_name`` overrides win over generation.
    """
    rng = random.Random(seed) if seed is not None else None
    values = {key: value for key, value in overrides.items() if value is not None}
    # Generate both names even when overridden so a seed always maps to the same pair
    resource_group_name = random_resource_name(RESOURCE_GROUP_PREFIX, RESOURCE_GROUP_NAME_LEN, rng=rng)
    public_ip_name = random_resource_name(PUBLIC_IP_PREFIX, PUBLIC_IP_NAME_LEN, rng=rng)
    values.setdefault("resource_group_name", resource_group_name)
    values.setdefault("public_ip_name", public_ip_name)
    if "certificate_path" in values:
        values["certificate_path"] = Path(values["certificate_path"])
    if "backend_ip_addresses" in values:
        values["backend_ip_addresses"] = tuple(values["backend_ip_addresses"])
    return DemoConfig(**values)

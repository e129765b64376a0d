from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from pathlib import Path
import re
from typing import TYPE_CHECKING, Literal

from gwdemo.services.errors import ProvisioningError

if TYPE_CHECKING:
    from gwdemo.services.gateway_state import GatewayState

Protocol = Literal["Http", "Https"]
CleanupStatus = Literal["deleted", "nothing-to-clean", "failed"]

NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,79}$")
_DER_SEQUENCE_TAG = 0x30


def _check_name(kind: str, value: str) -> None:
    if not NAME_RE.fullmatch(value):
        raise ProvisioningError(f"Invalid {kind} name: {value!r}")


def _check_port(kind: str, value: int) -> None:
    if not 1 <= value <= 65535:
        raise ProvisioningError(f"{kind} must be between 1 and 65535, got {value}")


@dataclass(frozen=True)
class BackendPool:
    name: str
    ip_addresses: tuple[str, ...]

    def __post_init__(self) -> None:
        _check_name("backend pool", self.name)
        object.__setattr__(self, "ip_addresses", tuple(self.ip_addresses))


@dataclass(frozen=True)
class SslCertificate:
    name: str
    pfx_path: Path
    password: str = field(repr=False)

    def __post_init__(self) -> None:
        _check_name("certificate", self.name)

    def load(self) -> str:
        """Read the PFX file and return it base64 encoded."""
        try:
            data = Path(self.pfx_path).read_bytes()
        except OSError as exc:
            raise ProvisioningError(
                f"Unable to load certificate {self.name!r} from {self.pfx_path}: {exc.strerror or exc}"
            ) from exc
        if not data:
            raise ProvisioningError(f"Certificate file {self.pfx_path} is empty")
        # PKCS#12 is DER encoded; anything else is not a PFX
        if data[0] != _DER_SEQUENCE_TAG:
            raise ProvisioningError(f"Certificate file {self.pfx_path} is not a PFX (PKCS#12) file")
        return base64.b64encode(data).decode("ascii")


@dataclass(frozen=True)
class RoutingRule:
    name: str
    frontend_port: int
    backend_port: int
    backend_pool: BackendPool
    protocol: Protocol = "Http"
    host_name: str | None = None
    cookie_affinity: bool = False
    certificate: SslCertificate | None = None

    def __post_init__(self) -> None:
        _check_name("routing rule", self.name)
        _check_port("frontend_port", self.frontend_port)
        _check_port("backend_port", self.backend_port)
        if self.protocol not in ("Http", "Https"):
            raise ProvisioningError(f"Unsupported protocol for rule {self.name!r}: {self.protocol!r}")
        if self.protocol == "Https" and self.certificate is None:
            raise ProvisioningError(f"Rule {self.name!r} uses Https but has no certificate")
        if self.protocol == "Http" and self.certificate is not None:
            raise ProvisioningError(f"Rule {self.name!r} has a certificate but uses Http")


@dataclass(frozen=True)
class GatewaySpec:
    """Desired state of an application gateway."""

    name: str
    region: str
    public_ip_name: str
    rules: tuple[RoutingRule, ...] = ()
    sku: str = "Standard_v2"
    capacity: int = 2

    def __post_init__(self) -> None:
        _check_name("gateway", self.name)
        _check_name("public IP", self.public_ip_name)
        object.__setattr__(self, "rules", tuple(self.rules))
        seen: set[str] = set()
        for rule in self.rules:
            if rule.name in seen:
                raise ProvisioningError(f"Duplicate routing rule name: {rule.name!r}")
            seen.add(rule.name)
        if self.capacity < 1:
            raise ProvisioningError("capacity must be at least 1")

    def rule_names(self) -> tuple[str, ...]:
        return tuple(rule.name for rule in self.rules)

    def rule(self, name: str) -> RoutingRule:
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise KeyError(name)

    def with_rule(self, rule: RoutingRule) -> GatewaySpec:
        if rule.name in self.rule_names():
            raise ProvisioningError(f"Gateway {self.name!r} already has a routing rule named {rule.name!r}")
        return replace(self, rules=self.rules + (rule,))

    def without_rule(self, name: str) -> GatewaySpec:
        if name not in self.rule_names():
            raise ProvisioningError(f"Gateway {self.name!r} has no routing rule named {name!r}")
        return replace(self, rules=tuple(rule for rule in self.rules if rule.name != name))


@dataclass(frozen=True)
class GatewayMutation:
    remove: tuple[str, ...] = ()
    add: tuple[RoutingRule, ...] = ()

    def apply_to(self, spec: GatewaySpec) -> GatewaySpec:
        # Removals first so a replacement rule never collides with the one it replaces
        updated = spec
        for name in self.remove:
            updated = updated.without_rule(name)
        for rule in self.add:
            updated = updated.with_rule(rule)
        return updated


@dataclass(frozen=True)
class AzureSession:
    subscription_id: str
    tenant_id: str
    client_id: str


@dataclass(frozen=True)
class ProvisionedGateway:
    spec: GatewaySpec
    resource_group: str
    state: GatewayState


@dataclass(frozen=True)
class CleanupOutcome:
    status: CleanupStatus
    resource_group: str | None
    error: str | None = None


@dataclass(frozen=True)
class RunResult:
    subscription_id: str | None
    created: ProvisionedGateway | None
    updated: ProvisionedGateway | None
    error: str | None
    cleanup: CleanupOutcome

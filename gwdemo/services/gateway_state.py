from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gwdemo.services.errors import ProvisioningError


@dataclass(frozen=True)
class RuleState:
    name: str
    rule_type: str | None
    frontend_port: int | None
    protocol: str | None
    backend_port: int | None
    backend_pool: str | None
    backend_addresses: tuple[str, ...]
    host_name: str | None
    cookie_affinity: bool
    ssl_certificate: str | None


@dataclass(frozen=True)
class GatewayState:
    """Resolved configuration of an application gateway as reported by Azure."""

    id: str | None
    name: str
    resource_group: str | None
    region: str | None
    sku: str | None
    tier: str | None
    capacity: int | None
    operational_state: str | None
    provisioning_state: str | None
    public: bool
    frontend_ports: dict[str, int]
    backend_pools: dict[str, tuple[str, ...]]
    ssl_certificates: tuple[str, ...]
    listeners: dict[str, dict[str, Any]]
    rules: tuple[RuleState, ...]

    def rule_names(self) -> tuple[str, ...]:
        return tuple(rule.name for rule in self.rules)

    def rule(self, name: str) -> RuleState:
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise KeyError(name)


def _props(item: dict[str, Any]) -> dict[str, Any]:
    # az flattens "properties" for network resources; raw ARM payloads nest them
    nested = item.get("properties")
    if isinstance(nested, dict):
        return {**item, **nested}
    return item


def _ref_name(ref: Any) -> str | None:
    if not isinstance(ref, dict):
        return None
    ref_id = ref.get("id")
    if not isinstance(ref_id, str) or not ref_id:
        return None
    return ref_id.rstrip("/").rsplit("/", 1)[-1]


def _items(payload: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = payload.get(key) or []
    if not isinstance(value, list):
        raise ProvisioningError(f"Unexpected gateway payload: {key} must be a list")
    return [_props(item) for item in value if isinstance(item, dict)]


def _resource_group_from_id(resource_id: str | None) -> str | None:
    if not resource_id:
        return None
    parts = resource_id.strip("/").split("/")
    lowered = [part.lower() for part in parts]
    if "resourcegroups" in lowered:
        index = lowered.index("resourcegroups")
        if index + 1 < len(parts):
            return parts[index + 1]
    return None


def parse_gateway(payload: Any) -> GatewayState:
    if not isinstance(payload, dict):
        raise ProvisioningError("Unexpected gateway payload: expected a JSON object")
    gateway = _props(payload)
    name = gateway.get("name")
    if not isinstance(name, str) or not name:
        raise ProvisioningError("Unexpected gateway payload: missing name")

    ports = {item["name"]: int(item["port"]) for item in _items(gateway, "frontendPorts") if "port" in item}
    pools = {
        item["name"]: tuple(
            address.get("ipAddress") or address.get("fqdn") or ""
            for address in (item.get("backendAddresses") or [])
        )
        for item in _items(gateway, "backendAddressPools")
    }
    settings = {item["name"]: item for item in _items(gateway, "backendHttpSettingsCollection")}
    listeners = {}
    for item in _items(gateway, "httpListeners"):
        listeners[item["name"]] = {
            "protocol": item.get("protocol"),
            "host_name": item.get("hostName"),
            "frontend_port": _ref_name(item.get("frontendPort")),
            "ssl_certificate": _ref_name(item.get("sslCertificate")),
        }

    rules = []
    for item in _items(gateway, "requestRoutingRules"):
        listener = listeners.get(_ref_name(item.get("httpListener")) or "", {})
        pool_name = _ref_name(item.get("backendAddressPool"))
        setting = settings.get(_ref_name(item.get("backendHttpSettings")) or "", {})
        backend_port = setting.get("port")
        rules.append(
            RuleState(
                name=item["name"],
                rule_type=item.get("ruleType"),
                frontend_port=ports.get(listener.get("frontend_port") or ""),
                protocol=listener.get("protocol"),
                backend_port=int(backend_port) if backend_port is not None else None,
                backend_pool=pool_name,
                backend_addresses=pools.get(pool_name or "", ()),
                host_name=listener.get("host_name"),
                cookie_affinity=str(setting.get("cookieBasedAffinity", "")).lower() == "enabled",
                ssl_certificate=listener.get("ssl_certificate"),
            )
        )

    sku = gateway.get("sku") if isinstance(gateway.get("sku"), dict) else {}
    frontends = _items(gateway, "frontendIPConfigurations")
    return GatewayState(
        id=gateway.get("id"),
        name=name,
        resource_group=gateway.get("resourceGroup") or _resource_group_from_id(gateway.get("id")),
        region=gateway.get("location"),
        sku=sku.get("name"),
        tier=sku.get("tier"),
        capacity=sku.get("capacity"),
        operational_state=gateway.get("operationalState"),
        provisioning_state=gateway.get("provisioningState"),
        public=any(item.get("publicIPAddress") for item in frontends),
        frontend_ports=ports,
        backend_pools=pools,
        ssl_certificates=tuple(item["name"] for item in _items(gateway, "sslCertificates")),
        listeners=listeners,
        rules=tuple(rules),
    )


def format_gateway(state: GatewayState) -> str:
    lines = [
        f"Application gateway: {state.id or state.name}",
        f"\tName: {state.name}",
        f"\tResource group: {state.resource_group}",
        f"\tRegion: {state.region}",
        f"\tSKU: {state.sku} (tier={state.tier}, capacity={state.capacity})",
        f"\tOperational state: {state.operational_state}",
        f"\tProvisioning state: {state.provisioning_state}",
        f"\tPublic: {state.public}",
        f"\tBackend pools: {len(state.backend_pools)}",
    ]
    for pool_name, addresses in state.backend_pools.items():
        lines.append(f"\t\t{pool_name}: {', '.join(addresses) or '(no addresses)'}")

    lines.append(f"\tFrontend ports: {len(state.frontend_ports)}")
    for port_name, port in state.frontend_ports.items():
        lines.append(f"\t\t{port_name}: {port}")

    lines.append(f"\tSSL certificates: {len(state.ssl_certificates)}")
    for cert in state.ssl_certificates:
        lines.append(f"\t\t{cert}")

    lines.append(f"\tHTTP listeners: {len(state.listeners)}")
    for listener_name, listener in state.listeners.items():
        lines.append(
            f"\t\t{listener_name}: protocol={listener['protocol']} port={listener['frontend_port']} "
            f"host={listener['host_name'] or '*'} certificate={listener['ssl_certificate'] or '-'}"
        )

    lines.append(f"\tRequest routing rules: {len(state.rules)}")
    for rule in state.rules:
        lines.extend(
            [
                f"\t\tName: {rule.name}",
                f"\t\t\tType: {rule.rule_type}",
                f"\t\t\tFrontend: {rule.protocol}:{rule.frontend_port}",
                f"\t\t\tHost name: {rule.host_name or '*'}",
                f"\t\t\tSSL certificate: {rule.ssl_certificate or '-'}",
                f"\t\t\tBackend: Http:{rule.backend_port} -> {rule.backend_pool}",
                f"\t\t\tBackend addresses: {', '.join(rule.backend_addresses)}",
                f"\t\t\tCookie-based affinity: {'enabled' if rule.cookie_affinity else 'disabled'}",
            ]
        )
    return "\n".join(lines)

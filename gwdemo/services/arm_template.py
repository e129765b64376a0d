from __future__ import annotations

import logging
import re
from typing import Any

from gwdemo.models import BackendPool, GatewaySpec, RoutingRule, SslCertificate
from gwdemo.services.errors import ProvisioningError

logger = logging.getLogger(__name__)

TEMPLATE_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"
PARAMETERS_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentParameters.json#"
NETWORK_API_VERSION = "2023-09-01"

VNET_ADDRESS_PREFIX = "10.0.0.0/16"
SUBNET_ADDRESS_PREFIX = "10.0.0.0/24"
SUBNET_NAME = "default"
GATEWAY_IP_CONFIG_NAME = "default-ipconfig"
FRONTEND_IP_CONFIG_NAME = "default-frontend-public"
RULE_PRIORITY_START = 100
RULE_PRIORITY_STEP = 10
REQUEST_TIMEOUT_SECONDS = 30

_PARAM_TOKEN_RE = re.compile(r"[^A-Za-z0-9]+")

GATEWAY_TYPE = "Microsoft.Network/applicationGateways"


def vnet_name(spec: GatewaySpec) -> str:
    return f"{spec.name}-vnet"


def frontend_port_name(port: int) -> str:
    return f"port-{port}"


def listener_name(rule: RoutingRule) -> str:
    return f"{rule.name}-listener"


def settings_name(rule: RoutingRule) -> str:
    return f"{rule.name}-settings"


def _child_id(spec: GatewaySpec, kind: str, name: str) -> dict[str, str]:
    return {"id": f"[resourceId('{GATEWAY_TYPE}/{kind}', '{spec.name}', '{name}')]"}


def _param_token(name: str) -> str:
    return _PARAM_TOKEN_RE.sub("", name.title()) or "Cert"


def _collect_pools(spec: GatewaySpec) -> list[BackendPool]:
    pools: dict[str, BackendPool] = {}
    for rule in spec.rules:
        pool = rule.backend_pool
        if not pool.ip_addresses:
            raise ProvisioningError(f"Backend pool {pool.name!r} of rule {rule.name!r} has no addresses")
        known = pools.get(pool.name)
        if known is not None and known.ip_addresses != pool.ip_addresses:
            raise ProvisioningError(f"Backend pool {pool.name!r} is defined with conflicting addresses")
        pools.setdefault(pool.name, pool)
    return list(pools.values())


def _collect_certificates(spec: GatewaySpec) -> list[SslCertificate]:
    certificates: dict[str, SslCertificate] = {}
    for rule in spec.rules:
        cert = rule.certificate
        if cert is None:
            continue
        known = certificates.get(cert.name)
        if known is not None and known != cert:
            raise ProvisioningError(f"Certificate {cert.name!r} is defined twice with different sources")
        certificates.setdefault(cert.name, cert)
    return list(certificates.values())


def _vnet_resource(spec: GatewaySpec) -> dict[str, Any]:
    return {
        "type": "Microsoft.Network/virtualNetworks",
        "apiVersion": NETWORK_API_VERSION,
        "name": vnet_name(spec),
        "location": spec.region,
        "properties": {
            "addressSpace": {"addressPrefixes": [VNET_ADDRESS_PREFIX]},
            "subnets": [{"name": SUBNET_NAME, "properties": {"addressPrefix": SUBNET_ADDRESS_PREFIX}}],
        },
    }


def _public_ip_resource(spec: GatewaySpec) -> dict[str, Any]:
    return {
        "type": "Microsoft.Network/publicIPAddresses",
        "apiVersion": NETWORK_API_VERSION,
        "name": spec.public_ip_name,
        "location": spec.region,
        "sku": {"name": "Standard"},
        "properties": {"publicIPAllocationMethod": "Static"},
    }


def _gateway_resource(
    spec: GatewaySpec,
    pools: list[BackendPool],
    certificates: list[tuple[SslCertificate, str, str]],
) -> dict[str, Any]:
    ports = sorted({rule.frontend_port for rule in spec.rules})
    listeners = []
    settings = []
    routing_rules = []
    for index, rule in enumerate(spec.rules):
        listener: dict[str, Any] = {
            "frontendIPConfiguration": _child_id(spec, "frontendIPConfigurations", FRONTEND_IP_CONFIG_NAME),
            "frontendPort": _child_id(spec, "frontendPorts", frontend_port_name(rule.frontend_port)),
            "protocol": rule.protocol,
        }
        if rule.certificate is not None:
            listener["sslCertificate"] = _child_id(spec, "sslCertificates", rule.certificate.name)
        if rule.host_name:
            listener["hostName"] = rule.host_name
        listeners.append({"name": listener_name(rule), "properties": listener})

        settings.append(
            {
                "name": settings_name(rule),
                "properties": {
                    "port": rule.backend_port,
                    "protocol": "Http",
                    "cookieBasedAffinity": "Enabled" if rule.cookie_affinity else "Disabled",
                    "requestTimeout": REQUEST_TIMEOUT_SECONDS,
                },
            }
        )
        routing_rules.append(
            {
                "name": rule.name,
                "properties": {
                    "ruleType": "Basic",
                    "priority": RULE_PRIORITY_START + index * RULE_PRIORITY_STEP,
                    "httpListener": _child_id(spec, "httpListeners", listener_name(rule)),
                    "backendAddressPool": _child_id(spec, "backendAddressPools", rule.backend_pool.name),
                    "backendHttpSettings": _child_id(spec, "backendHttpSettingsCollection", settings_name(rule)),
                },
            }
        )

    return {
        "type": GATEWAY_TYPE,
        "apiVersion": NETWORK_API_VERSION,
        "name": spec.name,
        "location": spec.region,
        "dependsOn": [
            f"[resourceId('Microsoft.Network/virtualNetworks', '{vnet_name(spec)}')]",
            f"[resourceId('Microsoft.Network/publicIPAddresses', '{spec.public_ip_name}')]",
        ],
        "properties": {
            "sku": {"name": spec.sku, "tier": spec.sku, "capacity": spec.capacity},
            "gatewayIPConfigurations": [
                {
                    "name": GATEWAY_IP_CONFIG_NAME,
                    "properties": {
                        "subnet": {
                            "id": (
                                "[resourceId('Microsoft.Network/virtualNetworks/subnets', "
                                f"'{vnet_name(spec)}', '{SUBNET_NAME}')]"
                            )
                        }
                    },
                }
            ],
            "frontendIPConfigurations": [
                {
                    "name": FRONTEND_IP_CONFIG_NAME,
                    "properties": {
                        "publicIPAddress": {
                            "id": f"[resourceId('Microsoft.Network/publicIPAddresses', '{spec.public_ip_name}')]"
                        }
                    },
                }
            ],
            "frontendPorts": [{"name": frontend_port_name(port), "properties": {"port": port}} for port in ports],
            "sslCertificates": [
                {
                    "name": cert.name,
                    "properties": {
                        "data": f"[parameters('{data_param}')]",
                        "password": f"[parameters('{password_param}')]",
                    },
                }
                for cert, data_param, password_param in certificates
            ],
            "backendAddressPools": [
                {
                    "name": pool.name,
                    "properties": {"backendAddresses": [{"ipAddress": ip} for ip in pool.ip_addresses]},
                }
                for pool in pools
            ],
            "backendHttpSettingsCollection": settings,
            "httpListeners": listeners,
            "requestRoutingRules": routing_rules,
        },
    }


def render_deployment(spec: GatewaySpec) -> tuple[dict[str, Any], dict[str, Any]]:
    """Render the gateway, its public IP and virtual network as one ARM deployment.

    Returns ``(template, parameters)``. Certificate material only ever appears
    in ``parameters``, as securestring values.
    """
    if not spec.rules:
        raise ProvisioningError(f"Gateway {spec.name!r} needs at least one routing rule")

    pools = _collect_pools(spec)
    template_params: dict[str, Any] = {}
    param_values: dict[str, Any] = {}
    certificates: list[tuple[SslCertificate, str, str]] = []
    for cert in _collect_certificates(spec):
        token = _param_token(cert.name)
        data_param = f"sslCert{token}Data"
        password_param = f"sslCert{token}Password"
        if data_param in template_params:
            raise ProvisioningError(f"Certificate name {cert.name!r} collides with another certificate")
        template_params[data_param] = {"type": "securestring"}
        template_params[password_param] = {"type": "securestring"}
        param_values[data_param] = {"value": cert.load()}
        param_values[password_param] = {"value": cert.password}
        certificates.append((cert, data_param, password_param))

    template = {
        "$schema": TEMPLATE_SCHEMA,
        "contentVersion": "1.0.0.0",
        "parameters": template_params,
        "resources": [
            _vnet_resource(spec),
            _public_ip_resource(spec),
            _gateway_resource(spec, pools, certificates),
        ],
    }
    parameters = {
        "$schema": PARAMETERS_SCHEMA,
        "contentVersion": "1.0.0.0",
        "parameters": param_values,
    }
    logger.debug(
        "Rendered deployment for gateway=%s rules=%s pools=%s certificates=%s",
        spec.name,
        list(spec.rule_names()),
        [pool.name for pool in pools],
        [cert.name for cert, _, _ in certificates],
    )
    return template, parameters

from __future__ import annotations

from gwdemo.config import DemoConfig
from gwdemo.models import BackendPool, GatewayMutation, GatewaySpec, RoutingRule, SslCertificate


def backend_pool(config: DemoConfig) -> BackendPool:
    return BackendPool(name=config.backend_pool_name, ip_addresses=config.backend_ip_addresses)


def initial_gateway_spec(config: DemoConfig) -> GatewaySpec:
    """Plain HTTP on the public frontend, round-robin over the backend pool."""
    rule = RoutingRule(
        name=config.initial_rule_name,
        frontend_port=config.frontend_http_port,
        backend_port=config.backend_port,
        backend_pool=backend_pool(config),
        protocol="Http",
    )
    return GatewaySpec(
        name=config.gateway_name,
        region=config.region,
        public_ip_name=config.public_ip_name,
        rules=(rule,),
        capacity=config.capacity,
    )


def tls_offload_mutation(config: DemoConfig) -> GatewayMutation:
    """Replace the HTTP rule with an HTTPS one that terminates TLS for a single host name."""
    rule = RoutingRule(
        name=config.tls_rule_name,
        frontend_port=config.frontend_https_port,
        backend_port=config.backend_port,
        backend_pool=backend_pool(config),
        protocol="Https",
        host_name=config.host_name,
        cookie_affinity=True,
        certificate=SslCertificate(
            name=config.certificate_name,
            pfx_path=config.certificate_path,
            password=config.certificate_password,
        ),
    )
    return GatewayMutation(remove=(config.initial_rule_name,), add=(rule,))

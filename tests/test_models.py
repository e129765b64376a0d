from __future__ import annotations

import base64

import pytest

from gwdemo.models import BackendPool, GatewayMutation, GatewaySpec, RoutingRule, SslCertificate
from gwdemo.services.errors import ProvisioningError
from tests.provisioner_utils import PFX_BYTES

POOL = BackendPool(name="pool-a", ip_addresses=("10.0.1.4", "10.0.1.5"))


def _http_rule(name: str = "HTTP-80-to-8080", port: int = 80) -> RoutingRule:
    return RoutingRule(name=name, frontend_port=port, backend_port=8080, backend_pool=POOL)


def _spec(*rules: RoutingRule) -> GatewaySpec:
    return GatewaySpec(name="gw-a", region="eastus", public_ip_name="pip-a", rules=rules)


def test_with_rule_rejects_duplicate_name() -> None:
    spec = _spec(_http_rule())

    with pytest.raises(ProvisioningError) as exc_info:
        spec.with_rule(_http_rule(port=81))
    assert "already has a routing rule" in str(exc_info.value)


def test_spec_construction_rejects_duplicate_rule_names() -> None:
    with pytest.raises(ProvisioningError):
        _spec(_http_rule(), _http_rule(port=81))


def test_without_rule_requires_existing_name() -> None:
    with pytest.raises(ProvisioningError):
        _spec(_http_rule()).without_rule("does-not-exist")


def test_specs_are_immutable_values() -> None:
    spec = _spec(_http_rule())
    extended = spec.with_rule(_http_rule(name="HTTP-81", port=81))

    assert spec.rule_names() == ("HTTP-80-to-8080",)
    assert extended.rule_names() == ("HTTP-80-to-8080", "HTTP-81")


def test_mutation_removes_before_adding(pfx_file) -> None:
    cert = SslCertificate(name="cert-a", pfx_path=pfx_file, password="pw")
    replacement = RoutingRule(
        name="HTTPs-1443-to-8080",
        frontend_port=1443,
        backend_port=8080,
        backend_pool=POOL,
        protocol="Https",
        certificate=cert,
    )
    mutation = GatewayMutation(remove=("HTTP-80-to-8080",), add=(replacement,))

    updated = mutation.apply_to(_spec(_http_rule()))

    assert updated.rule_names() == ("HTTPs-1443-to-8080",)
    assert updated.rule("HTTPs-1443-to-8080").certificate == cert


def test_mutation_can_reuse_removed_rule_name() -> None:
    mutation = GatewayMutation(remove=("HTTP-80-to-8080",), add=(_http_rule(port=8081),))

    updated = mutation.apply_to(_spec(_http_rule()))

    assert updated.rule("HTTP-80-to-8080").frontend_port == 8081


@pytest.mark.parametrize(
    "kwargs",
    [
        {"frontend_port": 0},
        {"backend_port": 70000},
        {"name": "bad name"},
        {"protocol": "Https"},
    ],
)
def test_routing_rule_validation(kwargs) -> None:
    values = {"name": "rule-a", "frontend_port": 80, "backend_port": 8080, "backend_pool": POOL, **kwargs}
    with pytest.raises(ProvisioningError):
        RoutingRule(**values)


def test_certificate_load_returns_base64(pfx_file) -> None:
    cert = SslCertificate(name="cert-a", pfx_path=pfx_file, password="pw")

    assert base64.b64decode(cert.load()) == PFX_BYTES


def test_certificate_load_missing_file(tmp_path) -> None:
    cert = SslCertificate(name="cert-a", pfx_path=tmp_path / "nope._pfx", password="pw")

    with pytest.raises(ProvisioningError) as exc_info:
        cert.load()
    assert "Unable to load certificate 'cert-a'" in str(exc_info.value)


def test_certificate_load_rejects_non_pfx(tmp_path) -> None:
    pem = tmp_path / "cert.pem"
    pem.write_text("-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n")
    empty = tmp_path / "empty._pfx"
    empty.write_bytes(b"")

    with pytest.raises(ProvisioningError, match="not a PFX"):
        SslCertificate(name="cert-a", pfx_path=pem, password="pw").load()
    with pytest.raises(ProvisioningError, match="empty"):
        SslCertificate(name="cert-a", pfx_path=empty, password="pw").load()


def test_certificate_password_hidden_from_repr(pfx_file) -> None:
    cert = SslCertificate(name="cert-a", pfx_path=pfx_file, password="Abc123")

    assert "Abc123" not in repr(cert)

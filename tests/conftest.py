from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from gwdemo.config import build_config
from tests.provisioner_utils import PFX_BYTES, FakeProvisioner


@pytest.fixture
def pfx_file(tmp_path) -> Path:
    path = tmp_path / "myTest._pfx"
    path.write_bytes(PFX_BYTES)
    return path


@pytest.fixture
def auth_file(tmp_path) -> Path:
    path = tmp_path / "my.azureauth"
    path.write_text(
        json.dumps(
            {
                "clientId": "client-123",
                "clientSecret": "s3cr3t-value",
                "tenantId": "tenant-abc",
                "subscriptionId": "sub-from-file",
            }
        )
    )
    return path


@pytest.fixture
def auth_environ(auth_file) -> dict[str, str]:
    return {"AZURE_AUTH_LOCATION": str(auth_file)}


@pytest.fixture
def demo_config(pfx_file):
    return build_config(seed=7, certificate_path=pfx_file)


@pytest.fixture
def fake_provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def echoed() -> list[str]:
    return []


@pytest.fixture()
def cli_runner(monkeypatch, fake_provisioner, auth_file):
    project_root = Path(__file__).resolve().parents[1]
    sys.path.append(str(project_root))
    monkeypatch.setenv("AZURE_AUTH_LOCATION", str(auth_file))

    import gwdemo.cli as cli

    importlib.reload(cli)
    monkeypatch.setattr(cli, "provisioner", fake_provisioner)

    return CliRunner(), cli.app

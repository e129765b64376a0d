from __future__ import annotations

import json

import pytest

from gwdemo.services.credentials import credentials_from_env, load_credentials
from gwdemo.services.errors import AuthenticationError


def test_load_sdk_auth_json(auth_file) -> None:
    credentials = load_credentials(auth_file)

    assert credentials.client_id == "client-123"
    assert credentials.client_secret == "s3cr3t-value"
    assert credentials.tenant_id == "tenant-abc"
    assert credentials.subscription_id == "sub-from-file"
    assert "s3cr3t-value" not in repr(credentials)


def test_load_legacy_properties_file(tmp_path) -> None:
    path = tmp_path / "my.azureauth"
    path.write_text(
        "# service principal\n"
        "subscription=sub-1\n"
        "client=client-1\n"
        "key=secret-1\n"
        "tenant=tenant-1\n"
        "managementURI=https\\://management.core.windows.net/\n"
    )

    credentials = load_credentials(path)

    assert credentials.subscription_id == "sub-1"
    assert credentials.client_secret == "secret-1"


def test_json_missing_required_field_is_rejected(tmp_path) -> None:
    path = tmp_path / "auth.json"
    path.write_text(json.dumps({"clientId": "c", "tenantId": "t", "subscriptionId": "s"}))

    with pytest.raises(AuthenticationError) as exc_info:
        load_credentials(path)
    assert "clientSecret" in str(exc_info.value)


def test_properties_missing_keys_are_listed(tmp_path) -> None:
    path = tmp_path / "my.azureauth"
    path.write_text("client=client-1\n")

    with pytest.raises(AuthenticationError, match="key, subscription, tenant"):
        load_credentials(path)


@pytest.mark.parametrize("content", ["", "{not json", "just some words"])
def test_malformed_files_are_rejected(tmp_path, content) -> None:
    path = tmp_path / "auth"
    path.write_text(content)

    with pytest.raises(AuthenticationError):
        load_credentials(path)


def test_env_var_unset() -> None:
    with pytest.raises(AuthenticationError, match="AZURE_AUTH_LOCATION is not set"):
        credentials_from_env(environ={})


def test_env_var_points_to_missing_file(tmp_path) -> None:
    with pytest.raises(AuthenticationError, match="Unable to read credential file"):
        credentials_from_env(environ={"AZURE_AUTH_LOCATION": str(tmp_path / "missing.azureauth")})


def test_custom_env_var(auth_file) -> None:
    credentials = credentials_from_env("MY_AUTH", environ={"MY_AUTH": str(auth_file)})

    assert credentials.client_id == "client-123"

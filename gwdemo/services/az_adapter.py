from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from gwdemo.proc import AzCommandError, CommandRunner, az_binary, run_command, run_json
from gwdemo.services.credentials import ServicePrincipalCredentials

logger = logging.getLogger(__name__)

_GROUP_NOT_FOUND_CODE = "resourcegroupnotfound"
_NOT_FOUND_MARKERS = (_GROUP_NOT_FOUND_CODE, "could not be found", "resourcenotfound", "not found")


@dataclass(frozen=True)
class AccountInfo:
    subscription_id: str
    tenant_id: str | None
    user: str | None


@dataclass(frozen=True)
class GroupResult:
    name: str
    exists: bool
    changed: bool
    location: str | None = None


@dataclass(frozen=True)
class DeploymentResult:
    name: str
    resource_group: str
    provisioning_state: str | None
    duration: str | None = None
    correlation_id: str | None = None


def _error_text(exc: AzCommandError) -> str:
    return f"{exc.result.stderr}\n{exc.result.stdout}".lower()


def is_not_found(exc: AzCommandError) -> bool:
    text = _error_text(exc)
    return any(marker in text for marker in _NOT_FOUND_MARKERS)


def is_group_not_found(exc: AzCommandError) -> bool:
    return _GROUP_NOT_FOUND_CODE in _error_text(exc)


def _account_info(payload: Any) -> AccountInfo:
    if not isinstance(payload, dict) or not payload.get("id"):
        raise ValueError("az account show returned no subscription id")
    user = payload.get("user")
    return AccountInfo(
        subscription_id=payload["id"],
        tenant_id=payload.get("tenantId"),
        user=user.get("name") if isinstance(user, dict) else None,
    )


class AzureCliAdapter:
    """Adapter over the Azure CLI for resource group, deployment and gateway operations."""

    def __init__(self, *, runner: CommandRunner | None = None, az: str | None = None) -> None:
        self._runner = runner
        self._az = az or az_binary()

    def _cmd(self, *args: str) -> list[str]:
        return [self._az, *args]

    def login_service_principal(self, credentials: ServicePrincipalCredentials) -> AccountInfo:
        logger.info(
            "Logging in service principal client_id=%s tenant=%s",
            credentials.client_id,
            credentials.tenant_id,
        )
        run_command(
            self._cmd(
                "login",
                "--service-principal",
                "--username",
                credentials.client_id,
                # Joined so a secret starting with '-' is not read as an option
                f"--password={credentials.client_secret}",
                "--tenant",
                credentials.tenant_id,
                "--output",
                "none",
            ),
            runner=self._runner,
            error_message=f"Failed to log in service principal {credentials.client_id}",
            redact=(credentials.client_secret,),
        )
        self.set_subscription(credentials.subscription_id)
        return self.show_account()

    def set_subscription(self, subscription_id: str) -> None:
        logger.debug("Selecting subscription %s", subscription_id)
        run_command(
            self._cmd("account", "set", "--subscription", subscription_id),
            runner=self._runner,
            error_message=f"Failed to select subscription {subscription_id}",
        )

    def show_account(self) -> AccountInfo:
        payload = run_json(
            self._cmd("account", "show", "--output", "json"),
            runner=self._runner,
            error_message="Failed to show the active account",
        )
        return _account_info(payload)

    def create_group(self, name: str, location: str) -> GroupResult:
        logger.info("Creating resource group %s in %s", name, location)
        payload = run_json(
            self._cmd("group", "create", "--name", name, "--location", location, "--output", "json"),
            runner=self._runner,
            error_message=f"Failed to create resource group {name}",
        )
        resolved_location = payload.get("location") if isinstance(payload, dict) else None
        return GroupResult(name=name, exists=True, changed=True, location=resolved_location or location)

    def group_exists(self, name: str) -> bool:
        payload = run_json(
            self._cmd("group", "exists", "--name", name, "--output", "json"),
            runner=self._runner,
            error_message=f"Failed to check resource group {name}",
        )
        return payload is True

    def delete_group(self, name: str) -> GroupResult:
        logger.info("Deleting resource group %s", name)
        try:
            run_command(
                self._cmd("group", "delete", "--name", name, "--yes"),
                runner=self._runner,
                error_message=f"Failed to delete resource group {name}",
            )
        except AzCommandError as exc:
            if self._confirmed_absent(name, exc):
                logger.debug("Resource group was already absent: %s", name)
                return GroupResult(name=name, exists=False, changed=False)
            raise
        logger.info("Deleted resource group %s", name)
        return GroupResult(name=name, exists=False, changed=True)

    def _confirmed_absent(self, name: str, exc: AzCommandError) -> bool:
        if is_group_not_found(exc):
            return True
        if not is_not_found(exc):
            return False
        # Subscription or provider lookups also say "not found"; ask about the group itself
        try:
            return not self.group_exists(name)
        except AzCommandError as check_exc:
            logger.warning("Could not confirm resource group %s is gone: %s", name, check_exc)
            return False

    def deploy_template(
        self,
        *,
        resource_group: str,
        deployment_name: str,
        template: dict[str, Any],
        parameters: dict[str, Any],
    ) -> DeploymentResult:
        logger.info("Submitting deployment '%s' to resource group '%s'", deployment_name, resource_group)
        with _json_file(template) as template_file, _json_file(parameters) as parameters_file:
            payload = run_json(
                self._cmd(
                    "deployment",
                    "group",
                    "create",
                    "--resource-group",
                    resource_group,
                    "--name",
                    deployment_name,
                    "--template-file",
                    str(template_file),
                    "--parameters",
                    f"@{parameters_file}",
                    "--mode",
                    "Incremental",
                    "--output",
                    "json",
                ),
                runner=self._runner,
                error_message=f"Deployment {deployment_name} failed in resource group {resource_group}",
            )

        properties = payload.get("properties", {}) if isinstance(payload, dict) else {}
        if not isinstance(properties, dict):
            properties = {}
        result = DeploymentResult(
            name=deployment_name,
            resource_group=resource_group,
            provisioning_state=properties.get("provisioningState"),
            duration=properties.get("duration"),
            correlation_id=properties.get("correlationId"),
        )
        logger.info(
            "Deployment '%s' finished state=%s duration=%s",
            deployment_name,
            result.provisioning_state,
            result.duration,
        )
        return result

    def show_application_gateway(self, *, resource_group: str, name: str) -> dict[str, Any]:
        logger.debug("Reading application gateway %s/%s", resource_group, name)
        payload = run_json(
            self._cmd(
                "network",
                "application-gateway",
                "show",
                "--resource-group",
                resource_group,
                "--name",
                name,
                "--output",
                "json",
            ),
            runner=self._runner,
            error_message=f"Failed to read application gateway {name}",
        )
        if not isinstance(payload, dict):
            raise ValueError(f"Invalid application gateway payload for {name}")
        return payload


class _json_file:
    """Temporary JSON file removed on exit; deployment parameters carry secrets."""

    def __init__(self, payload: dict[str, Any]) -> None:
        self._payload = payload
        self.path: Path | None = None

    def __enter__(self) -> Path:
        tmp = NamedTemporaryFile(mode="w", encoding="utf-8", suffix=".json", delete=False)
        try:
            tmp.write(json.dumps(self._payload))
            tmp.flush()
        finally:
            tmp.close()
        self.path = Path(tmp.name)
        logger.debug("Wrote temporary deployment file: %s", self.path)
        return self.path

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.path and self.path.exists():
            self.path.unlink()
            logger.debug("Removed temporary deployment file: %s", self.path)

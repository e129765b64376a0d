from __future__ import annotations

import logging
import random

from gwdemo.models import AzureSession, GatewaySpec
from gwdemo.proc import AzCommandError
from gwdemo.services.arm_template import render_deployment
from gwdemo.services.az_adapter import AzureCliAdapter, GroupResult
from gwdemo.services.credentials import ServicePrincipalCredentials
from gwdemo.services.errors import (
    AuthenticationError,
    CleanupError,
    NoResourceError,
    ProvisioningError,
)
from gwdemo.services.gateway_state import GatewayState, parse_gateway
from gwdemo.services.naming import deployment_name

logger = logging.getLogger(__name__)


class Provisioner:
    """Facade over the Azure CLI adapter used by the demo driver.

    Every call blocks until Azure reports the long-running operation as
    finished. Command failures are translated into the domain errors.
    """

    def __init__(self, *, az: AzureCliAdapter | None = None, rng: random.Random | None = None) -> None:
        self.az = az or AzureCliAdapter()
        self._rng = rng

    def authenticate(self, credentials: ServicePrincipalCredentials) -> AzureSession:
        try:
            account = self.az.login_service_principal(credentials)
        except (AzCommandError, ValueError) as exc:
            raise AuthenticationError(f"Azure rejected the service principal credentials: {exc}") from exc
        return AzureSession(
            subscription_id=account.subscription_id,
            tenant_id=account.tenant_id or credentials.tenant_id,
            client_id=credentials.client_id,
        )

    def create_resource_group(self, session: AzureSession, *, name: str, region: str) -> GroupResult:
        logger.debug("Creating resource group %s for subscription %s", name, session.subscription_id)
        try:
            return self.az.create_group(name, region)
        except (AzCommandError, ValueError) as exc:
            raise ProvisioningError(f"Could not create resource group {name}: {exc}") from exc

    def apply_gateway(
        self,
        session: AzureSession,
        *,
        resource_group: str,
        spec: GatewaySpec,
        stage: str,
    ) -> GatewayState:
        # Rendering loads certificates; failures surface before anything is submitted
        template, parameters = render_deployment(spec)
        name = deployment_name(spec.name, stage, rng=self._rng)
        logger.debug(
            "Applying gateway %s in %s (subscription=%s deployment=%s)",
            spec.name,
            resource_group,
            session.subscription_id,
            name,
        )
        try:
            self.az.deploy_template(
                resource_group=resource_group,
                deployment_name=name,
                template=template,
                parameters=parameters,
            )
            payload = self.az.show_application_gateway(resource_group=resource_group, name=spec.name)
        except (AzCommandError, ValueError) as exc:
            raise ProvisioningError(f"Applying gateway {spec.name} ({stage}) was rejected: {exc}") from exc
        return parse_gateway(payload)

    def delete_resource_group(self, session: AzureSession, *, name: str) -> GroupResult:
        logger.debug("Deleting resource group %s for subscription %s", name, session.subscription_id)
        try:
            result = self.az.delete_group(name)
        except AzCommandError as exc:
            hint = f"; retry later with 'gwdemo delete-group {name}'" if exc.retryable else ""
            raise CleanupError(f"Could not delete resource group {name}{hint}: {exc}") from exc
        if not result.changed:
            raise NoResourceError(f"Resource group {name} does not exist")
        return result


provisioner = Provisioner()

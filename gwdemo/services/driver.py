from __future__ import annotations

import logging
import time
from typing import Callable, Mapping

import typer

from gwdemo.config import DemoConfig
from gwdemo.models import (
    AzureSession,
    CleanupOutcome,
    GatewayMutation,
    GatewaySpec,
    ProvisionedGateway,
    RunResult,
)
from gwdemo.provisioner import Provisioner, provisioner as default_provisioner
from gwdemo.services.credentials import credentials_from_env
from gwdemo.services.errors import NoResourceError
from gwdemo.services.gateway_state import format_gateway
from gwdemo.services.scenario import initial_gateway_spec, tls_offload_mutation

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]
Clock = Callable[[], float]


class ProvisioningDemoDriver:
    """Authenticate, create a gateway, reconfigure it for TLS offload, then delete everything.

    The steps run strictly in order. Cleanup of the resource group runs exactly
    once per ``run()``, whichever step failed.
    """

    def __init__(
        self,
        config: DemoConfig,
        *,
        provisioner: Provisioner | None = None,
        echo: Echo = typer.echo,
        clock: Clock = time.monotonic,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._provisioner = provisioner or default_provisioner
        self._echo = echo
        self._clock = clock
        self._environ = environ
        self._requested_groups: set[str] = set()

    @property
    def config(self) -> DemoConfig:
        return self._config

    def created_anything(self, resource_group_name: str | None = None) -> bool:
        name = resource_group_name or self._config.resource_group_name
        return name in self._requested_groups

    def authenticate(self) -> AzureSession:
        credentials = credentials_from_env(self._config.auth_env_var, environ=self._environ)
        session = self._provisioner.authenticate(credentials)
        logger.info("Authenticated as client_id=%s", session.client_id)
        self._echo(f"Selected subscription: {session.subscription_id}")
        return session

    def create_gateway(self, session: AzureSession, spec: GatewaySpec) -> ProvisionedGateway:
        resource_group = self._config.resource_group_name
        self._echo("================= CREATE ======================")
        self._echo("Creating an application gateway... (this can take about 20 min)")
        started = self._clock()

        # Anything past this point may leave resources behind, even on failure
        self._requested_groups.add(resource_group)
        self._provisioner.create_resource_group(session, name=resource_group, region=spec.region)
        state = self._provisioner.apply_gateway(session, resource_group=resource_group, spec=spec, stage="create")

        self._echo(f"Application gateway created: (took {self._elapsed_seconds(started)} seconds)")
        self._echo(format_gateway(state))
        return ProvisionedGateway(spec=spec, resource_group=resource_group, state=state)

    def update_gateway(
        self,
        gateway: ProvisionedGateway,
        mutation: GatewayMutation,
        *,
        session: AzureSession,
    ) -> ProvisionedGateway:
        self._echo("================= UPDATE ======================")
        self._echo("Updating the application gateway")
        started = self._clock()

        desired = mutation.apply_to(gateway.spec)
        logger.info(
            "Updating gateway %s: removing %s, adding %s",
            desired.name,
            list(mutation.remove),
            [rule.name for rule in mutation.add],
        )
        state = self._provisioner.apply_gateway(
            session,
            resource_group=gateway.resource_group,
            spec=desired,
            stage="update",
        )

        self._echo(f"Application gateway updated: (took {self._elapsed_seconds(started)} seconds)")
        self._echo(format_gateway(state))
        return ProvisionedGateway(spec=desired, resource_group=gateway.resource_group, state=state)

    def cleanup(self, session: AzureSession | None, resource_group_name: str | None = None) -> CleanupOutcome:
        name = resource_group_name or self._config.resource_group_name
        if session is None or not self.created_anything(name):
            logger.info("Nothing was provisioned; skipping deletion of %s", name)
            self._echo("Did not create any resources in Azure. No clean up is necessary")
            return CleanupOutcome(status="nothing-to-clean", resource_group=None)

        self._echo(f"Deleting Resource Group: {name}")
        try:
            self._provisioner.delete_resource_group(session, name=name)
        except NoResourceError as exc:
            logger.info("%s", exc)
            self._echo("Did not create any resources in Azure. No clean up is necessary")
            return CleanupOutcome(status="nothing-to-clean", resource_group=name)
        except Exception as exc:
            logger.exception("Cleanup of resource group %s failed", name)
            self._echo(str(exc))
            return CleanupOutcome(status="failed", resource_group=name, error=str(exc))

        self._requested_groups.discard(name)
        self._echo(f"Deleted Resource Group: {name}")
        return CleanupOutcome(status="deleted", resource_group=name)

    def run(
        self,
        *,
        spec: GatewaySpec | None = None,
        mutation: GatewayMutation | None = None,
    ) -> RunResult:
        session: AzureSession | None = None
        created: ProvisionedGateway | None = None
        updated: ProvisionedGateway | None = None
        error: str | None = None
        cleanup: CleanupOutcome | None = None
        logger.info(
            "Starting gateway demo run resource_group=%s gateway=%s",
            self._config.resource_group_name,
            self._config.gateway_name,
        )
        try:
            session = self.authenticate()
            created = self.create_gateway(session, spec or initial_gateway_spec(self._config))
            updated = self.update_gateway(
                created,
                mutation or tls_offload_mutation(self._config),
                session=session,
            )
        except Exception as exc:
            logger.exception("Gateway demo run failed")
            self._echo(str(exc))
            error = str(exc)
        finally:
            cleanup = self.cleanup(session)

        logger.info(
            "Finished gateway demo run resource_group=%s error=%s cleanup=%s",
            self._config.resource_group_name,
            error is not None,
            cleanup.status,
        )
        return RunResult(
            subscription_id=session.subscription_id if session else None,
            created=created,
            updated=updated,
            error=error,
            cleanup=cleanup,
        )

    def _elapsed_seconds(self, started: float) -> int:
        return int(self._clock() - started)

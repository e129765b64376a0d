from __future__ import annotations

import logging
from pathlib import Path

import typer
import yaml

from gwdemo.config import DEFAULT_BACKEND_IPS, build_config
from gwdemo.logging_config import LOG_LEVELS, configure_logging
from gwdemo.provisioner import provisioner
from gwdemo.services.arm_template import render_deployment
from gwdemo.services.credentials import DEFAULT_AUTH_ENV_VAR, credentials_from_env
from gwdemo.services.driver import ProvisioningDemoDriver
from gwdemo.services.errors import GatewayDemoException, NoResourceError
from gwdemo.services.scenario import initial_gateway_spec, tls_offload_mutation

configure_logging()
logger = logging.getLogger(__name__)
app = typer.Typer(help="Application gateway provisioning demo", pretty_exceptions_show_locals=False)

_MASK = "********"


def _exit_for_domain_error(exc: GatewayDemoException) -> None:
    logger.warning("CLI command failed with domain error: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _echo_yaml_entity(entity: object) -> None:
    typer.echo(yaml.safe_dump(entity, sort_keys=False), nl=False)


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help=f"Level for diagnostics on stderr: {', '.join(LOG_LEVELS)} (default: $GWDEMO_LOG_LEVEL or INFO).",
    ),
) -> None:
    if log_level is None:
        return
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e


@app.command("run")
def run(
    resource_group: str | None = typer.Option(
        None, "--resource-group", help="Resource group to create (random 'rgneags...' name by default)."
    ),
    public_ip_name: str | None = typer.Option(
        None, "--public-ip-name", help="Public IP to create (random 'pip-...' name by default)."
    ),
    gateway_name: str = typer.Option("myFirstAppGateway", "--gateway-name"),
    region: str = typer.Option("eastus", "--region"),
    auth_env_var: str = typer.Option(
        DEFAULT_AUTH_ENV_VAR, "--auth-env-var", help="Environment variable holding the credential file path."
    ),
    certificate: Path = typer.Option(Path("myTest._pfx"), "--certificate", help="PFX file used for TLS offload."),
    certificate_password: str = typer.Option("Abc123", "--certificate-password"),
    host_name: str = typer.Option("www.contoso.com", "--host-name"),
    backend_ip: list[str] | None = typer.Option(
        None, "--backend-ip", help="Backend address; repeat for several (defaults to 11.1.1.1-11.1.1.4)."
    ),
    capacity: int = typer.Option(2, "--capacity", min=1),
    seed: int | None = typer.Option(None, "--seed", help="Seed for reproducible resource names."),
) -> None:
    """Create a gateway, switch it to TLS offload, then delete its resource group."""
    config = build_config(
        seed=seed,
        resource_group_name=resource_group,
        public_ip_name=public_ip_name,
        gateway_name=gateway_name,
        region=region,
        auth_env_var=auth_env_var,
        certificate_path=certificate,
        certificate_password=certificate_password,
        host_name=host_name,
        backend_ip_addresses=tuple(backend_ip) if backend_ip else DEFAULT_BACKEND_IPS,
        capacity=capacity,
    )
    result = ProvisioningDemoDriver(config, provisioner=provisioner).run()
    if result.error is not None:
        logger.warning("Demo run finished with error; cleanup status=%s", result.cleanup.status)


@app.command("render-template")
def render_template(
    stage: str = typer.Option("initial", "--stage", help="'initial' or 'updated'."),
    certificate: Path = typer.Option(Path("myTest._pfx"), "--certificate"),
    certificate_password: str = typer.Option("Abc123", "--certificate-password"),
    seed: int | None = typer.Option(None, "--seed"),
) -> None:
    """Print the ARM deployment for a stage without calling Azure."""
    if stage not in ("initial", "updated"):
        typer.echo(f"Error: unknown stage {stage!r}; expected 'initial' or 'updated'", err=True)
        raise typer.Exit(code=1)

    config = build_config(seed=seed, certificate_path=certificate, certificate_password=certificate_password)
    try:
        spec = initial_gateway_spec(config)
        if stage == "updated":
            spec = tls_offload_mutation(config).apply_to(spec)
        template, parameters = render_deployment(spec)
    except GatewayDemoException as e:
        _exit_for_domain_error(e)

    masked = {name: {"value": _MASK} for name in parameters["parameters"]}
    _echo_yaml_entity({"template": template, "parameters": {**parameters, "parameters": masked}})


@app.command("delete-group")
def delete_group(
    name: str,
    auth_env_var: str = typer.Option(DEFAULT_AUTH_ENV_VAR, "--auth-env-var"),
) -> None:
    """Delete a resource group left behind by an interrupted run."""
    try:
        session = provisioner.authenticate(credentials_from_env(auth_env_var))
        provisioner.delete_resource_group(session, name=name)
    except NoResourceError:
        typer.echo("Did not create any resources in Azure. No clean up is necessary")
        return
    except GatewayDemoException as e:
        _exit_for_domain_error(e)
    typer.echo(f"Deleted Resource Group: {name}")


if __name__ == "__main__":
    app()

# src/intunerun/cli.py
from __future__ import annotations
import json
import logging
import os
import pathlib
from typing import Any, Callable, Optional

import typer

from intunerun.config.loader import get_auth_config, get_run_config, load_appsettings
from intunerun.core.auth import (
    AuthError, ClientSecretTokenProvider, StaticTokenProvider, acquire_once
)
from intunerun.core.cache import read_json, write_json_atomic
from intunerun.core.dry_run import DryRunGate
from intunerun.core.graph_client import GraphClient
from intunerun.core.logs import setup_logging
from intunerun.core.runner import RunSettings
from intunerun.runbooks import RUNBOOKS

app = typer.Typer(help="Batch runbooks for Intune / Entra devices over Microsoft Graph.",
                  no_args_is_help=True)

log = logging.getLogger("intunerun")

TOKEN_ENV = "GRAPH_ACCESS_TOKEN"

def _dry_run_opt():
    return typer.Option(None, "--dry-run/--live", help="Log would-be changes without applying them.")

def _batch_size_opt():
    return typer.Option(None, "--batch-size", min=1, help="Items per batch.")

def _delay_opt():
    return typer.Option(None, "--delay", min=0.0, help="Seconds to pause between batches.")

def _max_actions_opt():
    return typer.Option(None, "--max-actions", min=0, help="Stop changing things after this many updates.")

def _output_opt():
    return typer.Option(None, "--output", "-o", help="Write the run summary JSON here.")

def _verbose_opt():
    return typer.Option(False, "--verbose", "-v", help="Debug logging.")


def _token_provider() -> Callable[[], str]:
    token = os.environ.get(TOKEN_ENV)
    if token:
        return StaticTokenProvider(token)
    auth = get_auth_config()
    return ClientSecretTokenProvider(auth["tenant_id"], auth["client_id"], auth["client_secret"])


def _run(
    name: str,
    *,
    dry_run: Optional[bool],
    batch_size: Optional[int],
    delay: Optional[float],
    max_actions: Optional[int],
    output: Optional[pathlib.Path],
    verbose: bool,
    **runbook_kwargs: Any,
) -> None:
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    settings = RunSettings.from_config(
        get_run_config(load_appsettings()),
        dry_run=dry_run,
        batch_size=batch_size,
        inter_batch_delay=delay,
        max_actions=max_actions,
    )
    try:
        token = acquire_once(_token_provider())
    except AuthError as ex:
        log.error("Authentication failed: %s (%s)", ex, ex.hint)
        raise typer.Exit(code=2)

    graph = GraphClient(token, gate=DryRunGate(settings.dry_run))
    try:
        summary = RUNBOOKS[name].run(graph, settings, **runbook_kwargs)
    except Exception:
        # already logged by the runner
        raise typer.Exit(code=1)

    payload = summary.to_dict()
    if output:
        write_json_atomic(output, payload)
        log.info("Summary written to %s", output)
    typer.echo(json.dumps(payload, indent=2))


@app.command("device-inventory")
def device_inventory(
    stale_days: int = typer.Option(30, "--stale-days", min=1, help="Days without sync before a device counts as stale."),
    dry_run: Optional[bool] = _dry_run_opt(),
    batch_size: Optional[int] = _batch_size_opt(),
    delay: Optional[float] = _delay_opt(),
    max_actions: Optional[int] = _max_actions_opt(),
    output: Optional[pathlib.Path] = _output_opt(),
    verbose: bool = _verbose_opt(),
):
    """Report managed device compliance and stale syncs per OS."""
    _run("device-inventory", dry_run=dry_run, batch_size=batch_size, delay=delay,
         max_actions=max_actions, output=output, verbose=verbose, stale_days=stale_days)


@app.command("group-tags")
def group_tags(
    tags: pathlib.Path = typer.Option(..., "--tags", exists=True, dir_okay=False,
                                      help='JSON object {"<serial>": "<group tag>"}.'),
    dry_run: Optional[bool] = _dry_run_opt(),
    batch_size: Optional[int] = _batch_size_opt(),
    delay: Optional[float] = _delay_opt(),
    max_actions: Optional[int] = _max_actions_opt(),
    output: Optional[pathlib.Path] = _output_opt(),
    verbose: bool = _verbose_opt(),
):
    """Set Autopilot group tags from a serial -> tag map."""
    try:
        desired = read_json(tags)
    except ValueError as ex:
        raise typer.BadParameter(f"tags file is not valid JSON: {ex}", param_hint="--tags")
    if not isinstance(desired, dict):
        raise typer.BadParameter("tags file must hold a JSON object", param_hint="--tags")
    _run("group-tags", dry_run=dry_run, batch_size=batch_size, delay=delay,
         max_actions=max_actions, output=output, verbose=verbose,
         desired_tags={str(k): str(v) for k, v in desired.items()})


def main():
    app()


if __name__ == "__main__":
    main()

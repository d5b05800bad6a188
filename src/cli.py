#!/usr/bin/env python3
"""
armctl - apply, refresh, import and destroy ARM resources from manifests.
"""

import asyncio
import json
import logging
import signal
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

import aiohttp
import click
import yaml
from tabulate import tabulate

from config import Config, get_config
from controller import ApplyResult, Controller, ManifestEntry
from db import DatabaseManager
from engine import ReconcileContext
from errors import EngineError
from identifiers import parse_resource_id
from operations import OperationWaiter
from resources.registry import register_builtin_kinds
from state import FileHandleStore, HandleStore
from transport import ArmTransport

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _build_store(config: Config) -> HandleStore:
    if config.state.backend == "postgres":
        db_config = config.state.database
        return DatabaseManager(
            host=db_config.host,
            port=db_config.port,
            database=db_config.database,
            user=db_config.user,
            password=db_config.password,
            min_pool_size=db_config.min_pool_size,
            max_pool_size=db_config.max_pool_size,
        )
    return FileHandleStore(config.state.state_file)


SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_shutdown_handlers(shutdown_event: asyncio.Event) -> None:
    """Set shutdown_event on SIGINT/SIGTERM so in-flight waits stop polling."""
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, signal_handler)


def remove_shutdown_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        loop.remove_signal_handler(sig)


@asynccontextmanager
async def controller_session(config: Config) -> AsyncIterator[Controller]:
    """Wire transport, waiter, store and registry into a Controller."""
    if not config.arm.subscription_id:
        raise click.UsageError("ARM_SUBSCRIPTION_ID environment variable must be set")

    registry = register_builtin_kinds()
    store = _build_store(config)
    await store.connect()
    timeout = aiohttp.ClientTimeout(total=config.arm.request_timeout)
    shutdown_event = asyncio.Event()
    install_shutdown_handlers(shutdown_event)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            transport = ArmTransport(
                session,
                access_token=config.arm.access_token,
                endpoint=config.arm.endpoint,
            )
            ctx = ReconcileContext(
                transport=transport,
                subscription_id=config.arm.subscription_id,
                waiter=OperationWaiter(
                    poll_interval=config.waiter.poll_interval,
                    timeout=config.waiter.timeout,
                    cancel_event=shutdown_event,
                ),
            )
            yield Controller(store, ctx, registry=registry, config=config.controller)
    finally:
        remove_shutdown_handlers()
        await store.close()


def load_manifest(filename: str) -> List[ManifestEntry]:
    """Read a YAML/JSON manifest: a single entry, a list, or {'resources': [...]}."""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    if isinstance(data, dict) and "resources" in data:
        data = data["resources"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise click.BadParameter(f"{filename} does not contain resource entries")
    return [ManifestEntry.from_dict(entry) for entry in data]


def _dump(data: Dict[str, Any], output: str) -> str:
    if output == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=True)
    return json.dumps(data, indent=2, sort_keys=True)


def _run(coro):
    try:
        return asyncio.run(coro)
    except KeyError as e:
        raise click.ClickException(e.args[0]) from e
    except (EngineError, ValueError) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
@click.pass_context
def cli(ctx, log_level):
    """armctl - reconcile declared resources with Azure Resource Manager"""
    config = get_config()
    _setup_logging(log_level or config.log_level)
    ctx.obj = config


@cli.command()
@click.option("--filename", "-f", type=click.Path(exists=True), required=True)
@click.pass_obj
def apply(config, filename):
    """Create, update or replace the resources in a manifest"""
    try:
        entries = load_manifest(filename)
    except (ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid manifest {filename}: {e}") from e

    async def run():
        async with controller_session(config) as controller:
            return await controller.apply_all(entries)

    results = _run(run())
    rows = []
    failed = False
    for entry, result in zip(entries, results):
        if isinstance(result, ApplyResult):
            rows.append([entry.address, entry.kind, result.action.value, result.identifier])
        else:
            failed = True
            rows.append([entry.address, entry.kind, "failed", str(result)])

    click.echo(tabulate(rows, headers=["Address", "Kind", "Action", "ID / Error"], tablefmt="grid"))
    if failed:
        raise SystemExit(1)


@cli.command()
@click.argument("address")
@click.pass_obj
def refresh(config, address):
    """Re-read a tracked resource and report drift"""

    async def run():
        async with controller_session(config) as controller:
            return await controller.refresh(address)

    drift = _run(run())
    if not drift.exists:
        click.echo(f"{address} was deleted outside armctl and has been removed from state")
    elif drift.drifted_attributes:
        click.echo(f"Drift detected in: {', '.join(drift.drifted_attributes)}")
    else:
        click.echo(f"{address} is up to date")


@cli.command()
@click.argument("address")
@click.confirmation_option(prompt="Are you sure you want to destroy this resource?")
@click.pass_obj
def destroy(config, address):
    """Delete a tracked resource"""

    async def run():
        async with controller_session(config) as controller:
            await controller.destroy(address)

    _run(run())
    click.echo(f"{address} destroyed")


@cli.command(name="import")
@click.argument("address")
@click.argument("kind")
@click.argument("identifier")
@click.pass_obj
def import_command(config, address, kind, identifier):
    """Track an existing remote object under ADDRESS"""

    async def run():
        async with controller_session(config) as controller:
            return await controller.import_resource(address, kind, identifier)

    result = _run(run())
    click.echo(f"Imported {identifier} as {address}")
    if result.unset_attributes:
        click.echo(
            "These attributes cannot be read back and must be set in your manifest: "
            + ", ".join(result.unset_attributes)
        )


@cli.command(name="list")
@click.pass_obj
def list_command(config):
    """List tracked resources"""

    async def run():
        store = _build_store(config)
        await store.connect()
        try:
            return await store.list()
        finally:
            await store.close()

    records = _run(run())
    rows = [[r.address, r.kind, r.identifier] for r in records]
    click.echo(tabulate(rows, headers=["Address", "Kind", "ID"], tablefmt="grid"))


@cli.command()
@click.argument("address")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.pass_obj
def show(config, address, output):
    """Show the persisted record for a resource"""

    async def run():
        store = _build_store(config)
        await store.connect()
        try:
            return await store.get(address)
        finally:
            await store.close()

    record = _run(run())
    if record is None:
        raise click.ClickException(f"{address} is not tracked")
    click.echo(_dump(record.to_dict(), output))


@cli.command()
def kinds():
    """List available resource kinds"""
    registry = register_builtin_kinds()
    rows = []
    for name in registry.list_kinds():
        kind = registry.get(name)
        schema = kind.schema
        rows.append(
            [
                name,
                kind.api_version,
                ", ".join(a.name for a in schema.attributes if a.required),
                ", ".join(schema.force_new),
            ]
        )
    click.echo(
        tabulate(rows, headers=["Kind", "API Version", "Required", "Force New"], tablefmt="grid")
    )


@cli.command(name="parse-id")
@click.argument("identifier")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="yaml")
def parse_id(identifier, output):
    """Decode a resource ID into its parts"""
    try:
        resource_id = parse_resource_id(identifier)
    except EngineError as e:
        raise click.ClickException(str(e)) from e

    click.echo(
        _dump(
            {
                "subscription_id": resource_id.subscription_id,
                "resource_group": resource_id.resource_group,
                "provider": resource_id.provider,
                "path": dict(resource_id.path),
            },
            output,
        )
    )


if __name__ == "__main__":
    cli()

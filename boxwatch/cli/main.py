"""Click commands: run the server, query a running server, import legacy logs."""

from __future__ import annotations

import asyncio
from typing import Any

import click
import httpx

from boxwatch.config import load_config
from boxwatch.observability.logging import setup_logging
from boxwatch.timecodec import resolve_tz

_DEFAULT_URL = "http://localhost:3000"


def _get(url: str, path: str, params: dict[str, Any] | None = None) -> Any:
    clean = {key: value for key, value in (params or {}).items() if value}
    try:
        response = httpx.get(f"{url.rstrip('/')}{path}", params=clean, timeout=10.0)
    except httpx.HTTPError as exc:
        raise click.ClickException(f"request to {url} failed: {exc}") from exc
    if not response.is_success:
        raise click.ClickException(f"{path} returned {response.status_code}: {response.text[:200]}")
    return response.json()


@click.group()
@click.version_option(package_name="boxwatch")
def cli() -> None:
    """BoxWatch: box heartbeat and service status monitor."""


@cli.command()
def serve() -> None:
    """Run the API server and offline sweeper (configured via BOXWATCH_* env vars)."""
    from boxwatch.app import main

    asyncio.run(main())


@cli.command()
@click.option("--url", default=_DEFAULT_URL, show_default=True, help="BoxWatch server URL.")
def boxes(url: str) -> None:
    """Show live status of every known box."""
    for row in _get(url, "/boxes"):
        click.echo(
            f"{row['no']:>3}  {row['boxCode']:<24} {row['online_status']:<8}"
            f" last={row.get('last_heartbeat') or '-'}  node-red={row['nodered_status']}"
        )
        for service in row.get("services", []):
            click.echo(f"       {service['service_name']:<32} {service['service_status']}")


@cli.command()
@click.option("--url", default=_DEFAULT_URL, show_default=True, help="BoxWatch server URL.")
@click.option("--box", "box_code", default=None, help="Only this box code.")
@click.option("--from", "start", default=None, help="Start date (YYYY-MM-DD) or ISO datetime.")
@click.option("--to", "end", default=None, help="End date (YYYY-MM-DD) or ISO datetime.")
@click.option(
    "--type",
    "event_type",
    type=click.Choice(["status_change", "heartbeat", "service_status"]),
    default="status_change",
    show_default=True,
)
def logs(url: str, box_code: str | None, start: str | None, end: str | None, event_type: str) -> None:
    """Show event history, newest first."""
    rows = _get(url, "/logs", {"boxCode": box_code, "from": start, "to": end, "type": event_type})
    for row in rows:
        detail = row.get("online_status") or f"{row.get('service_name')}={row.get('service_status')}"
        line = f"{row['timestamp']}  {row.get('boxCode') or '-':<24} {detail}"
        if event_type == "status_change":
            line += f"  [{row.get('service_status', '-')}]"
        click.echo(line)


@cli.command()
@click.option("--url", default=_DEFAULT_URL, show_default=True, help="BoxWatch server URL.")
@click.option("--box", "box_code", default=None, help="Only this box code.")
@click.option("--from", "start", default=None, help="Start date (YYYY-MM-DD) or ISO datetime.")
@click.option("--to", "end", default=None, help="End date (YYYY-MM-DD) or ISO datetime.")
def stats(url: str, box_code: str | None, start: str | None, end: str | None) -> None:
    """Show heartbeat count and cumulative online/offline time."""
    data = _get(url, "/stats", {"boxCode": box_code, "from": start, "to": end})
    click.echo(f"heartbeats: {data['totalHeartbeats']}")
    click.echo(f"online:     {data['totalOnlineMs'] / 1000:.0f}s")
    click.echo(f"offline:    {data['totalOfflineMs'] / 1000:.0f}s")


@cli.command("import-legacy")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--tz", "tz_name", default="UTC", show_default=True, help="Zone the legacy timestamps were written in.")
@click.option("--db", "db_path", default=None, help="SQLite file to import into (default: BOXWATCH_STORE_PATH).")
def import_legacy(path: str, tz_name: str, db_path: str | None) -> None:
    """Import a legacy status_log.json into the SQLite event store.

    The server only sees the imported history when it runs with
    BOXWATCH_STORE_BACKEND=sqlite and the same store path.
    """
    from boxwatch.store.legacy import import_legacy_file
    from boxwatch.store.sqlite import SQLiteEventStore

    config = load_config()
    setup_logging(config.log.level)
    try:
        tz = resolve_tz(tz_name)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--tz") from exc

    if config.store.backend != "sqlite":
        click.secho(
            f"warning: BOXWATCH_STORE_BACKEND is {config.store.backend!r}; the server will not read"
            " this import unless it runs with BOXWATCH_STORE_BACKEND=sqlite",
            fg="yellow",
            err=True,
        )

    store = SQLiteEventStore(db_path or config.store.path)
    try:
        result = import_legacy_file(store, path, tz)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        store.close()
    click.echo(f"imported {result.imported} events, skipped {result.skipped}")

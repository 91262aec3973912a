"""Operator commands for SmartPass.

Why:
    Admins occasionally need the CSV export or a quick look at the board from a
    server shell (e.g., nightly archive job), and need to check which role a
    staff email resolves to after changing the allowlists.

Usage:
    smartpass-admin export-csv --output passes.csv
    smartpass-admin whois mrs.daleo@school.edu
    smartpass-admin --store supabase list --view monitor

Notes:
    - The store is selected like in the web app (SMARTPASS_PASS_STORE) unless
      `--store` overrides it. With the in-memory store the board is empty; the
      command is only useful against the hosted store.
    - Role configuration is read from the SMARTPASS_* environment variables.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from identity_access.domain import Identity
from identity_access.roles import RoleResolver
from passes.board import PassBoard
from passes.export import export_csv
from passes.store_supabase import StoreError
from passes.views import View
from web.config import load_role_config
from web.store_wiring import build_pass_board, build_pass_store

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _board(ctx: click.Context) -> PassBoard:
    """Return the board for this invocation, building it on first use."""
    obj = ctx.ensure_object(dict)
    board = obj.get("board")
    if board is None:
        try:
            board = build_pass_board(build_pass_store(obj.get("store_backend")))
        except (RuntimeError, ValueError) as exc:
            raise click.ClickException(f"Pass store unavailable: {exc}") from exc
        obj["board"] = board
    try:
        board.sync()
    except StoreError as exc:
        raise click.ClickException(f"Pass store unavailable: {exc}") from exc
    return board


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for store and board diagnostics.",
)
@click.option(
    "--store",
    "store_backend",
    type=click.Choice(["memory", "supabase"]),
    default=None,
    help="Override SMARTPASS_PASS_STORE for this command.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, store_backend: str | None) -> None:
    """SmartPass administration commands."""
    logging.basicConfig(level=getattr(logging, log_level.upper()), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    obj = ctx.ensure_object(dict)
    obj.setdefault("store_backend", store_backend)


@cli.command("export-csv")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write to FILE instead of stdout.")
@click.pass_context
def export_csv_command(ctx: click.Context, output: Path | None) -> None:
    """Export all passes as CSV (newest first), like the admin download."""
    passes = _board(ctx).passes()
    body = export_csv(passes)
    if output is None:
        click.echo(body, nl=False)
        return
    output.write_text(body, encoding="utf-8")
    click.echo(f"Wrote {len(passes)} passes to {output}", err=True)


@cli.command("whois")
@click.argument("email")
def whois(email: str) -> None:
    """Print the role the current configuration resolves for EMAIL."""
    resolver = RoleResolver(load_role_config())
    role = resolver.resolve(Identity(email=email))
    name = resolver.teacher_name(email)
    suffix = f" ({name})" if name else ""
    click.echo(f"{email.strip().lower()}: {role}{suffix}")


@cli.command("list")
@click.option(
    "--view",
    type=click.Choice([View.DASHBOARD.value, View.MONITOR.value]),
    default=View.DASHBOARD.value,
    show_default=True,
    help="monitor lists active passes only.",
)
@click.pass_context
def list_passes(ctx: click.Context, view: str) -> None:
    """Print passes as tab-separated id, student, destination, status."""
    board = _board(ctx)
    items = board.view(View(view), None, "student")
    if not items:
        click.echo("No passes.")
        return
    for item in items:
        click.echo("\t".join([item.id or "", item.student_name, item.destination, item.status]))


if __name__ == "__main__":  # pragma: no cover - manual entry
    cli()

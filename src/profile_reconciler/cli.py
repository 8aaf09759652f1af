"""Command-line interface for instance profile reconciliation."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click
import yaml

from .config import Settings, setup_logging
from .controller import observe, reconcile_cluster, teardown_cluster
from .exceptions import ReconcilerError
from .iam import Boto3IAMAdapter
from .manifest import ClusterManifest


def _load_manifest(file_path: str) -> ClusterManifest:
    return ClusterManifest.from_yaml(Path(file_path).read_text())


def _adapter(ctx: click.Context) -> Boto3IAMAdapter:
    return Boto3IAMAdapter.from_settings(ctx.obj["settings"])


def _fail(error: ReconcilerError) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


file_option = click.option(
    "--file",
    "-f",
    "file_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML cluster manifest.",
)


@click.group()
@click.version_option(package_name="profile-reconciler")
@click.option("--region", help="AWS region (default: use boto3 defaults).")
@click.option("--endpoint-url", help="AWS endpoint URL (e.g., LocalStack).")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, region: str | None, endpoint_url: str | None, verbose: bool) -> None:
    """Reconcile IAM instance profiles for Kubernetes server pools."""
    try:
        settings = Settings.resolve(
            region=region,
            endpoint_url=endpoint_url,
            log_level="DEBUG" if verbose else None,
        )
    except ReconcilerError as e:
        _fail(e)
    setup_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command("apply")
@file_option
@click.pass_context
def apply_command(ctx: click.Context, file_path: str) -> None:
    """Create or update every instance profile in the manifest."""
    settings: Settings = ctx.obj["settings"]
    try:
        manifest = _load_manifest(file_path)
        result = reconcile_cluster(
            manifest.build_cluster(),
            manifest.resources(),
            _adapter(ctx),
            max_attempts=settings.max_attempts,
        )
    except ReconcilerError as e:
        _fail(e)

    for name in result.applied:
        click.echo(f"  + {name}")
    for name in result.unchanged:
        click.echo(f"  = {name}")
    click.echo(f"\nApplied: {len(result.applied)} converged, {len(result.unchanged)} unchanged.")


@cli.command("delete")
@file_option
@click.option("--yes", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_command(ctx: click.Context, file_path: str, yes: bool) -> None:
    """Delete every instance profile, role and policy in the manifest."""
    try:
        manifest = _load_manifest(file_path)
    except ReconcilerError as e:
        _fail(e)

    if not yes:
        click.confirm(
            f"Delete IAM instance profiles for cluster '{manifest.cluster}'?", abort=True
        )

    try:
        result = teardown_cluster(manifest.build_cluster(), manifest.resources(), _adapter(ctx))
    except ReconcilerError as e:
        _fail(e)

    for name in result.deleted:
        click.echo(f"  - {name}")
    click.echo(f"\nDeleted: {len(result.deleted)} instance profile(s).")


@cli.command("show")
@file_option
@click.pass_context
def show_command(ctx: click.Context, file_path: str) -> None:
    """Print the actual state of every instance profile as YAML."""
    try:
        manifest = _load_manifest(file_path)
        _, snapshots = observe(manifest.build_cluster(), manifest.resources(), _adapter(ctx))
    except ReconcilerError as e:
        _fail(e)

    click.echo(
        yaml.safe_dump(
            {"instance_profiles": [s.to_dict() for s in snapshots]},
            default_flow_style=False,
            sort_keys=False,
        )
    )


@cli.command("defaults")
@file_option
def defaults_command(file_path: str) -> None:
    """Print the resolved profile defaults."""
    try:
        manifest = _load_manifest(file_path)
    except ReconcilerError as e:
        _fail(e)

    click.echo(
        yaml.safe_dump(
            manifest.defaults.to_profile_response(manifest.cluster),
            default_flow_style=False,
            sort_keys=False,
        )
    )


if __name__ == "__main__":
    cli()

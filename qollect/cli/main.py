"""Main CLI entry point for Qollect."""

import asyncio
import json
from pathlib import Path
from typing import Optional, Sequence

import click
import yaml

from .. import __version__
from ..core.qollect import Qollect
from ..engine.provider import SnapshotEngineClient
from ..report.rows import REPORT_SECTIONS, MetadataReport


def _collect(ctx: click.Context, snapshot: str, sections: Optional[Sequence[str]] = None) -> MetadataReport:
    client = SnapshotEngineClient.from_file(snapshot)
    qollect = Qollect(client, config_path=ctx.obj.get("config"))
    return asyncio.run(qollect.collect(sections))


def _render(data, output_format: str) -> str:
    if output_format == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
@click.pass_context
def cli(ctx, config):
    """Qollect - app metadata export and usage analysis."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True))
@click.option(
    "--section", "-s",
    "sections",
    multiple=True,
    type=click.Choice(REPORT_SECTIONS),
    help="Report section to include (repeatable; default: configured sections)"
)
@click.option("--format", "output_format", type=click.Choice(["json", "yaml"]), default="json", show_default=True)
@click.option("--out", type=click.Path(path_type=Path), help="Write the report to a file instead of stdout")
@click.pass_context
def analyze(ctx, snapshot: str, sections, output_format: str, out: Optional[Path]):
    """
    Export the metadata report of an app snapshot.

    Example:
        qollect analyze app.json --section fields --section charts --format yaml
    """
    try:
        report = _collect(ctx, snapshot, sections)
        text = _render(report.to_dict(), output_format)
        if out:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(text, encoding="utf-8")
            click.echo(f"✓ Report written: {out}")
        else:
            click.echo(text)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()


@cli.command("unused-fields")
@click.argument("snapshot", type=click.Path(exists=True))
@click.pass_context
def unused_fields(ctx, snapshot: str):
    """List fields not referenced anywhere in the app."""
    try:
        report = _collect(ctx, snapshot, ["fields"])
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    unused = report.unused_fields
    click.echo(f"Unused fields: {len(unused)} of {len(report.fields)}")
    for name in unused:
        click.echo(f"  - {name}")


@cli.command("master-usage")
@click.argument("snapshot", type=click.Path(exists=True))
@click.pass_context
def master_usage(ctx, snapshot: str):
    """Show how many chart slots use each master dimension and measure."""
    try:
        report = _collect(ctx, snapshot, ["dimensions", "measures"])
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    click.echo(f"Dimensions ({len(report.dimensions)}):")
    for row in report.dimensions:
        click.echo(f"  {row.used_count:>4}  {row.title or row.id} [{row.id}]")
    click.echo(f"Measures ({len(report.measures)}):")
    for row in report.measures:
        click.echo(f"  {row.used_count:>4}  {row.title or row.id} [{row.id}]")


if __name__ == "__main__":
    cli()

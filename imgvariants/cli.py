"""CLI entry point for image variant generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from imgvariants.models.config import GeneratorConfig
from imgvariants.models.variant import ImageFormat
from imgvariants.orchestrator import Orchestrator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _split_values(ctx, param, values):
    """Accept both `-w 800 -w 1200` and `-w 800,1200`."""
    items: list[str] = []
    for value in values or ():
        items.extend(v.strip() for v in value.split(",") if v.strip())
    return items


def _parse_formats(ctx, param, values):
    try:
        return [ImageFormat.parse(v) for v in _split_values(ctx, param, values)]
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _parse_widths(ctx, param, values):
    widths = []
    for v in _split_values(ctx, param, values):
        try:
            width = int(v)
        except ValueError:
            raise click.BadParameter(f"'{v}' is not an integer width") from None
        if width <= 0:
            raise click.BadParameter(f"width must be positive, got {width}")
        widths.append(width)
    return widths


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Generate responsive image variants and a data.json manifest."""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", "config_path", default=None, help="Optional config file path")
@click.option("--dir", "-d", "source_dir", default=None, help="Directory containing the source images")
@click.option("--out-dir", "-o", default=None, help="Directory to write variants and data.json to")
@click.option("--formats", "-f", multiple=True, callback=_parse_formats,
              help="Output formats, repeatable or comma-separated (jpg, png, gif, webp, avif, svg)")
@click.option("--widths", "-w", multiple=True, callback=_parse_widths,
              help="Variant widths in pixels, repeatable or comma-separated")
@click.option("--quality", "-q", type=click.IntRange(1, 100), default=None,
              help="Output quality for lossy formats (1-100)")
@click.option("--lqip/--no-lqip", default=None, help="Create a blurred inline placeholder per image")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Maximum parallel codec workers")
@click.option("--merge/--no-merge", default=None, help="Merge into an existing data.json instead of replacing it")
def run(
    config_path: str | None,
    source_dir: str | None,
    out_dir: str | None,
    formats: list[ImageFormat],
    widths: list[int],
    quality: int | None,
    lqip: bool | None,
    workers: int | None,
    merge: bool | None,
) -> None:
    """Generate every width x format variant for each image in a directory."""
    try:
        cfg = GeneratorConfig.load(config_path) if config_path else GeneratorConfig()
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config_path}[/red]")
        console.print("Run 'imgvariants init' to create a default config.")
        sys.exit(1)

    overrides: dict = {}
    if source_dir is not None:
        overrides["source_dir"] = source_dir
    if out_dir is not None:
        overrides["out_dir"] = out_dir
    if formats:
        overrides["formats"] = formats
    if widths:
        overrides["widths"] = widths
    if quality is not None:
        overrides["quality"] = quality
    if workers is not None:
        overrides["max_workers"] = workers
    if merge is not None:
        overrides["merge_existing"] = merge
    if lqip is not None:
        overrides["lqip"] = cfg.lqip.model_copy(update={"enabled": lqip})

    try:
        cfg = GeneratorConfig(**{**cfg.model_dump(), **overrides})
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        sys.exit(2)

    result = Orchestrator(cfg).run()

    table = Table(title="Variant Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Run ID", result.run_id)
    table.add_row("Duration", f"{result.duration_seconds}s")
    table.add_row("Images", str(result.total_images))
    table.add_row("Skipped", f"[yellow]{result.skipped_images}[/yellow]")
    table.add_row("Variants created", f"[green]{result.variants_created}[/green]")
    table.add_row("Variants failed", f"[red]{result.variants_failed}[/red]")
    table.add_row("LQIP failed", f"[red]{result.lqip_failed}[/red]")
    console.print(table)

    if not result.success:
        console.print(f"[bold red]Run failed:[/bold red] {result.error}")
        sys.exit(1)

    console.print(f"Conversion completed. See [blue]{result.manifest_path}[/blue] for records created!")


@cli.command()
@click.option("--path", "-p", "config_path", default="imgvariants.json", help="Config file to create")
def init(config_path: str) -> None:
    """Create a default configuration file."""
    path = Path(config_path)
    if path.exists():
        if not click.confirm(f"{path} already exists. Overwrite?"):
            return

    GeneratorConfig().save(path)
    console.print(f"[green]Created {path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print(f"  [blue]imgvariants run --config {path}[/blue]")


@cli.command()
@click.argument("manifest_path", default="variants/data.json")
def show(manifest_path: str) -> None:
    """Print the contents of an existing manifest."""
    path = Path(manifest_path)
    if not path.exists():
        console.print(f"[red]Manifest not found: {path}[/red]")
        sys.exit(1)
    with open(path) as f:
        data = json.load(f)

    table = Table(title=str(path))
    table.add_column("Image", style="bold")
    table.add_column("LQIP")
    table.add_column("Width")
    table.add_column("Files")
    for base_name in sorted(data):
        record = data[base_name]
        lqip = record.get("lqip")
        lqip_text = f"{lqip['width']}x{lqip['height']}" if lqip else "[yellow]none[/yellow]"
        widths = sorted((k for k in record if k != "lqip"), key=int)
        if not widths:
            table.add_row(base_name, lqip_text, "-", "-")
        for i, width in enumerate(widths):
            files = ", ".join(record[width][ext] for ext in sorted(record[width]))
            table.add_row(base_name if i == 0 else "", lqip_text if i == 0 else "", width, files)
    console.print(table)


if __name__ == "__main__":
    cli()

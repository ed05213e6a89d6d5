from __future__ import annotations

import json
import logging
import sys
from typing import List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config_io import load_settings, Settings
from .defaults import (
    apply_analysis_overrides, apply_canvas_overrides, apply_color_overrides, ThresholdMode,
)
from .errors import KioskPrintError

# Core modules
from .analyze_core import analyze_pdf, analyze_with_fallback, count_document_pages
from .compose_core import compose_files
from .templates import list_templates

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="kioskprint: analyze documents for color/page count and compose photo collages for printing.",
)


def _load_settings(config: Optional[str], mode: Optional[str] = None) -> Settings:
    try:
        return load_settings(config, mode=mode)
    except (OSError, ValueError) as e:
        rprint(f"[red]Failed to load config {config}:[/red] {e}")
        raise typer.Exit(code=2)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """
    Configure logging for every command.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s - %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ---------------------- ANALYZE ----------------------
@app.command()
def analyze(
    input_pdf: str = typer.Argument(..., help="PDF to analyze"),
    mode: Optional[str] = typer.Option(None, "--mode", help="Color policy: basic|refined"),
    color_threshold: Optional[int] = typer.Option(None, "--color-threshold", help="Channel difference above which a pixel is colored"),
    saturation_threshold: Optional[float] = typer.Option(None, "--saturation-threshold", help="HSL saturation above which a pixel is colored (refined mode)"),
    percentage_threshold: Optional[float] = typer.Option(None, "--percentage-threshold", help="Percent of colored pixels that makes a page color"),
    scale: Optional[float] = typer.Option(None, "--scale", help="Render scale (1.0 = 72 dpi)"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Render/classify pages on N threads"),
    pdf_renderer: Optional[str] = typer.Option(None, "--pdf-renderer", help="PDF renderer: auto|fitz|pdf2image"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Settings file (.yaml/.yml)"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    fallback: bool = typer.Option(False, "--fallback/--no-fallback", help="On decode failure report 1 page / color instead of failing"),
):
    """
    Count pages and decide whether a PDF prints as color or black & white.
    """
    if mode is not None:
        try:
            ThresholdMode.parse(mode)
        except ValueError as e:
            raise typer.BadParameter(str(e))
    settings = _load_settings(config, mode)
    try:
        policy = apply_color_overrides(
            settings.color,
            color_threshold=color_threshold,
            saturation_threshold=saturation_threshold,
            percentage_threshold=percentage_threshold,
        )
        params = apply_analysis_overrides(
            settings.analysis, render_scale=scale, workers=workers, renderer=pdf_renderer,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e))

    used_fallback = False
    try:
        if fallback:
            result, used_fallback = analyze_with_fallback(input_pdf, policy, params)
        else:
            result = analyze_pdf(input_pdf, policy, params)
    except (KioskPrintError, OSError) as e:
        rprint(f"[red]Analysis failed for {input_pdf}:[/red] {e}")
        raise typer.Exit(code=2)

    if as_json:
        payload = result.to_dict()
        payload["fallback"] = used_fallback
        typer.echo(json.dumps(payload, indent=2))
        return

    if used_fallback:
        rprint("[yellow]Could not analyze document; using default of 1 color page.[/yellow]")
    label = "[magenta]COLOR[/magenta]" if result.is_color else "BLACK_WHITE"
    rprint(
        f"[green]{input_pdf}:[/green] {result.page_count} page(s), {label} "
        f"({result.confidence.value} confidence, page {result.deciding_page}: "
        f"{result.color_percentage:.3f}% colored)"
    )


# ---------------------- PAGES ----------------------
@app.command()
def pages(
    input_file: str = typer.Argument(..., help="PDF, DOCX or DOC file"),
    pdf_renderer: str = typer.Option("auto", "--pdf-renderer", help="PDF renderer: auto|fitz|pdf2image"),
):
    """
    Print the page count (estimated from file size for Word documents).
    """
    try:
        count = count_document_pages(input_file, renderer=pdf_renderer)
    except (KioskPrintError, OSError, ValueError) as e:
        rprint(f"[red]Could not count pages in {input_file}:[/red] {e}")
        raise typer.Exit(code=2)
    typer.echo(str(count))


# ---------------------- TEMPLATES ----------------------
@app.command()
def templates():
    """
    List the built-in collage templates.
    """
    table = Table(title="Collage templates")
    table.add_column("id")
    table.add_column("slots", justify="right")
    table.add_column("grid (cols x rows)")
    table.add_column("description")
    for t in list_templates():
        table.add_row(t.template_id, str(t.slot_count), f"{t.grid_cols}x{t.grid_rows}", str(t))
    Console().print(table)


# ---------------------- COMPOSE ----------------------
@app.command()
def compose(
    images: List[str] = typer.Argument(..., help="Photos in slot order (slot 1 first)"),
    template: str = typer.Option(..., "--template", "-t", help="Template id (see `kioskprint templates`)"),
    out_image: str = typer.Option("collage.jpg", "--out-image", "-o", help="Output image"),
    width: Optional[int] = typer.Option(None, "--width", help="Canvas width in px"),
    height: Optional[int] = typer.Option(None, "--height", help="Canvas height in px"),
    padding: Optional[int] = typer.Option(None, "--padding", help="Padding around cells in px"),
    quality: Optional[int] = typer.Option(None, "--quality", help="JPEG quality (1-100)"),
    out_format: Optional[str] = typer.Option(None, "--format", help="JPEG|PNG (default: from settings)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Settings file (.yaml/.yml)"),
):
    """
    Lay photos into a collage template and write one print-ready image.
    """
    settings = _load_settings(config)
    if out_format is None and out_image.lower().endswith(".png"):
        out_format = "PNG"
    try:
        params = apply_canvas_overrides(
            settings.canvas, width=width, height=height, padding=padding,
            quality=quality, output_format=out_format,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e))

    try:
        result = compose_files(template, images, out_image, params)
    except (KioskPrintError, OSError) as e:
        rprint(f"[red]Composition failed:[/red] {e}")
        raise typer.Exit(code=2)

    rprint(f"[green]Wrote:[/green] {out_image} ({result.width}x{result.height} {result.format})")


# ------------------------------- MAIN --------------------------------
def app_main() -> None:
    """Entry point for console_scripts."""
    try:
        app()
    except KeyboardInterrupt:
        rprint("\n[red]Interrupted[/red]")
        sys.exit(130)


if __name__ == "__main__":
    app_main()

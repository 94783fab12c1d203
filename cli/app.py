"""
Typer CLI application with Rich integration.

Commands:
    run        — Harvest images for every item in a CSV
    config     — Show current configuration
    check-url  — Run URLs through the URL filter
    score      — Quality-score a local image
    match      — Match confidence of a URL against an item
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.table import Table
from rich.text import Text

from cli.callbacks import validate_csv, validate_profile, validate_workers
from cli.console import console
from cli.display import (
    create_progress,
    format_item_status,
    show_banner,
    show_config_table,
    show_final_report,
    show_goodbye,
    show_input_info,
    show_key_values,
)

app = typer.Typer(
    name="harvest",
    help="🖼️  Product image harvester — candidate URLs in, classified image folders out",
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=False,
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  RUN COMMAND
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def run(
    # ── Inputs ──
    items_csv: Optional[Path] = typer.Option(
        None,
        "--items", "-i",
        help="Items CSV (id, name, brand)",
        callback=validate_csv,
    ),
    candidates_csv: Optional[Path] = typer.Option(
        None,
        "--candidates", "-c",
        help="Candidate URL CSV (item_id, url[, source])",
        callback=validate_csv,
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Base directory for item folders",
    ),

    # ── Behaviour ──
    profile: str = typer.Option(
        "strict",
        "--profile", "-p",
        help="Quality profile: strict or relaxed",
        callback=validate_profile,
    ),
    workers: int = typer.Option(
        5,
        "--workers", "-w",
        help="Concurrent downloads",
        callback=validate_workers,
    ),
    max_images: int = typer.Option(
        5,
        "--max-images", "-m",
        help="Images kept per item",
        min=1,
    ),
    metadata: bool = typer.Option(
        True,
        "--metadata/--no-metadata",
        help="Write metadata.json next to kept images",
    ),

    # ── Output ──
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet", "-q",
        help="Minimal output (errors only)",
    ),
) -> None:
    """
    🚀 [bold]Harvest product images[/bold] for every item in the items CSV.

    [dim]Examples:[/dim]
        harvest run
        harvest run -i items.csv -c candidates.csv -o out/
        harvest run --profile relaxed --workers 8 --max-images 3
    """
    from config.settings import cfg as base_cfg, get_profile
    from core.pipeline import HarvestPipeline, ShutdownHandler
    from sources.items import load_items
    from sources.manager import SourceManager
    from sources.static import CsvCandidateSource
    from utils.exceptions import ConfigurationError
    from utils.log_config import setup_root

    if not quiet:
        show_banner()

    paths = {}
    if items_csv:
        paths["items_csv"] = items_csv
    if candidates_csv:
        paths["candidates_csv"] = candidates_csv
    if output_dir:
        paths["output_dir"] = output_dir

    try:
        cfg = base_cfg.with_overrides(
            paths=paths,
            quality=get_profile(profile),
            download={"concurrent_downloads": workers},
            pipeline={"max_images_per_item": max_images},
            storage={"write_metadata": metadata},
            verbose=verbose,
        )
        cfg.validate()
    except ConfigurationError as exc:
        console.print(f"[error]Configuration error: {exc}[/]")
        raise typer.Exit(code=2)

    # ── Setup logging ──
    cfg.paths.ensure()
    setup_root(cfg.paths.log_file, verbose=verbose)
    if quiet:
        logging.getLogger().setLevel(logging.WARNING)

    for label, path in (("Items CSV", cfg.paths.items_csv), ("Candidates CSV", cfg.paths.candidates_csv)):
        if not path.exists():
            console.print(f"[error]{label} not found: {path}[/]")
            raise typer.Exit(code=1)

    items = load_items(cfg.paths.items_csv)
    sources = SourceManager([CsvCandidateSource(cfg.paths.candidates_csv, cfg.sources)], cfg.sources)

    if not quiet:
        show_config_table({
            "Profile": cfg.quality.name,
            "Concurrent Downloads": cfg.download.concurrent_downloads,
            "Max Images / Item": cfg.pipeline.max_images_per_item,
            "Match Threshold": cfg.match.match_threshold,
            "Metadata Sidecar": cfg.storage.write_metadata,
            "Output Dir": str(cfg.paths.output_dir),
        })
        show_input_info(
            len(items),
            sum(1 for it in items if it.has_brand),
            str(cfg.paths.candidates_csv),
        )
        console.rule("[progress]Starting Pipeline[/]", style="bright_blue")
        console.print()

    shutdown = ShutdownHandler()
    pipeline = HarvestPipeline(cfg, sources, shutdown=shutdown)

    if quiet:
        pipeline.run(items)
    else:
        progress = create_progress()
        task = progress.add_task("Harvesting...", total=len(items))
        done = {"n": 0}

        def on_item(res) -> None:
            done["n"] += 1
            progress.update(
                task,
                advance=1,
                description=format_item_status(
                    done["n"], len(items), res.item_id, res.classification, res.downloaded,
                ),
            )

        with progress:
            pipeline.run(items, on_item=on_item)

        show_final_report(pipeline.summary)
        show_goodbye(str(cfg.paths.output_dir), interrupted=shutdown.should_stop)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CONFIG COMMAND
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def config(
    section: Optional[str] = typer.Argument(
        None,
        help="Only show one section (download, quality, match, ...)",
    ),
) -> None:
    """
    ⚙️  Show current configuration from settings.py.
    """
    from config.settings import cfg

    table = cfg.as_table()
    if section:
        table = {k: v for k, v in table.items() if k.startswith(f"{section}.")}
        if not table:
            console.print(f"[error]Unknown section: {section}[/]")
            raise typer.Exit(code=1)
    show_config_table(table)

    files = Table(title="📁 File Status", box=box.SIMPLE)
    files.add_column("File")
    files.add_column("Status")
    files.add_column("Path", style="muted")
    for name, path in (
        ("Items CSV", cfg.paths.items_csv),
        ("Candidates CSV", cfg.paths.candidates_csv),
        ("Output Dir", cfg.paths.output_dir),
    ):
        exists = path.exists()
        files.add_row(
            name,
            Text("✅ Found" if exists else "❌ Missing", style="green" if exists else "red"),
            str(path),
        )
    console.print(files)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CHECK-URL COMMAND
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command("check-url")
def check_url(
    urls: List[str] = typer.Argument(..., help="One or more candidate URLs"),
) -> None:
    """
    🔗 Show whether the URL filter keeps each URL, and why not.
    """
    from config.settings import cfg
    from imaging.url_filter import UrlFilter

    flt = UrlFilter(cfg.filter)
    table = Table(title="🔗 URL Filter", box=box.ROUNDED, border_style="bright_blue")
    table.add_column("URL", style="url", overflow="fold")
    table.add_column("Decision")
    table.add_column("Reason", style="muted")

    rejected = 0
    for url in urls:
        decision = flt.check(url)
        if not decision.keep:
            rejected += 1
        table.add_row(
            url,
            Text("✅ keep", style="success") if decision.keep else Text("❌ drop", style="error"),
            decision.reason,
        )
    console.print(table)
    if rejected == len(urls):
        raise typer.Exit(code=1)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SCORE COMMAND
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def score(
    image_path: Path = typer.Argument(..., help="Path to image file", exists=True, dir_okay=False),
    profile: str = typer.Option(
        "strict", "--profile", "-p",
        help="Quality profile: strict or relaxed",
        callback=validate_profile,
    ),
) -> None:
    """
    📐 Quality-score a local image.

    [dim]Example: harvest score photo.jpg --profile relaxed[/dim]
    """
    from config.settings import cfg, get_profile
    from imaging.helpers import decode_image
    from imaging.scorer import ImageQualityScorer
    from utils.exceptions import UnsupportedFormatError

    data = image_path.read_bytes()
    try:
        image = decode_image(data, cfg.filter.allowed_formats)
    except UnsupportedFormatError as exc:
        console.print(f"[error]{exc}[/]")
        raise typer.Exit(code=1)

    report = ImageQualityScorer(get_profile(profile)).score_bytes(data, image)
    verdict = "[success]✅ ACCEPTED[/]" if report.is_valid else "[error]❌ REJECTED[/]"
    style = "score" if report.is_valid else "score_bad"

    show_key_values(
        f"📐 Quality ({report.profile})",
        [
            ("Decision", Text.from_markup(verdict)),
            ("Score", Text(f"{report.score:.4f}", style=style)),
            ("Dimensions", f"{report.width}x{report.height}"),
            ("File size", f"{report.file_size:,} bytes"),
            ("Aspect ratio", f"{report.aspect_ratio:.3f}"),
            ("Background", f"{report.background_confidence:.3f}"),
            ("Watermark ratio", f"{report.watermark_ratio:.3f}"),
            ("Sharpness", f"{report.sharpness:.3f}"),
            ("Reasons", "; ".join(report.reasons) or "—"),
        ],
        ok=report.is_valid,
    )
    if not report.is_valid:
        raise typer.Exit(code=1)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  MATCH COMMAND
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def match(
    url: str = typer.Argument(..., help="Candidate image URL"),
    name: str = typer.Argument(..., help="Item name"),
    brand: Optional[str] = typer.Option(None, "--brand", "-b", help="Item brand"),
    source: str = typer.Option("", "--source", "-s", help="Source tag of the URL"),
) -> None:
    """
    🎯 Match confidence of a URL's file name against an item.

    [dim]Example: harvest match https://x.com/acme-widget-500ml.jpg "Widget 500ml" -b Acme[/dim]
    """
    from config.settings import cfg
    from imaging.matcher import MatchEstimator

    result = MatchEstimator(cfg.match).estimate(url, name, brand, source)
    rows = [
        ("Mode", result.mode),
        ("Confidence", Text(f"{result.confidence:.4f}", style="score" if result.is_match else "score_bad")),
        ("Match", "✅" if result.is_match else "❌"),
        ("Perfect", "✅" if result.is_perfect_match else "—"),
    ]
    rows += [(k, f"{v:.3f}" if isinstance(v, float) else str(v)) for k, v in result.details.items()]
    show_key_values("🎯 Match", rows, ok=result.is_match)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DEFAULT (no command)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.callback(invoke_without_command=True)
def default(ctx: typer.Context) -> None:
    """
    🖼️  Product image harvester.

    Run [bold]harvest run[/bold] to process the items CSV.
    """
    if ctx.invoked_subcommand is None:
        show_banner()
        console.print("Available commands:\n")
        console.print("  [bold cyan]run[/]        Harvest images for the items CSV")
        console.print("  [bold cyan]config[/]     Show current configuration")
        console.print("  [bold cyan]check-url[/]  Test URLs against the URL filter")
        console.print("  [bold cyan]score[/]      Quality-score a local image")
        console.print("  [bold cyan]match[/]      Match confidence of a URL for an item")
        console.print()
        console.print("[muted]Run 'python main.py run --help' for detailed options[/]")

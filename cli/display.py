"""
Rich display components — banners, tables, progress, panels.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.align import Align
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from cli.console import console


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  BANNER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

BANNER = r"""
  _   _                           _
 | | | | __ _ _ ____   _____  ___| |_
 | |_| |/ _` | '__\ \ / / _ \/ __| __|
 |  _  | (_| | |   \ V /  __/\__ \ |_
 |_| |_|\__,_|_|    \_/ \___||___/\__|
"""


def show_banner() -> None:
    panel = Panel(
        Align.center(Text(BANNER, style="bold cyan")),
        subtitle="product image harvester",
        border_style="bright_blue",
        padding=(0, 2),
    )
    console.print(panel)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CONFIG TABLE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _format_value(value: Any) -> Text:
    if isinstance(value, bool):
        return Text("✅ Yes" if value else "❌ No", style="success" if value else "muted")
    if isinstance(value, (list, tuple)):
        return Text(", ".join(str(v) for v in value), style="engine")
    if isinstance(value, (int, float)):
        return Text(str(value), style="highlight")
    return Text(str(value), style="stat_val")


def show_config_table(config: Dict[str, Any], title: str = "⚙️  Configuration") -> None:
    """Display configuration as a rich table."""
    table = Table(
        title=title,
        box=box.ROUNDED,
        border_style="bright_blue",
        show_header=True,
        header_style="bold white on blue",
        padding=(0, 1),
    )
    table.add_column("Setting", style="stat_key", min_width=20)
    table.add_column("Value", style="stat_val", min_width=30)

    for key, value in config.items():
        table.add_row(key, _format_value(value))

    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  INPUT INFO
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_input_info(items: int, branded: int, candidate_file: Optional[str] = None) -> None:
    table = Table(
        title="📄 Input",
        box=box.SIMPLE_HEAVY,
        border_style="bright_blue",
    )
    table.add_column("Metric", style="stat_key")
    table.add_column("Value", style="stat_val")

    table.add_row("Items", str(items))
    table.add_row("Branded", str(branded))
    table.add_row("Unbranded", str(items - branded))
    if candidate_file:
        table.add_row("Candidates", candidate_file)

    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PROGRESS BAR
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def create_progress() -> Progress:
    """Create a rich progress bar for the pipeline."""
    return Progress(
        SpinnerColumn("dots", style="progress"),
        TextColumn("[progress]{task.description}[/]"),
        BarColumn(bar_width=40, complete_style="green", finished_style="bright_green"),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TextColumn("│"),
        TimeElapsedColumn(),
        TextColumn("│"),
        TimeRemainingColumn(),
        console=console,
        expand=False,
    )


_STATUS_ICONS = {
    "Found":        "✅",
    "NotSure":      "🤔",
    "NoImageFound": "❌",
}


def format_item_status(
    idx: int,
    total: int,
    item_id: str,
    classification: str,
    kept: int = 0,
) -> str:
    """One-line status for the progress bar description."""
    icon = _STATUS_ICONS.get(classification, "🔄")
    return f"{icon} [{idx}/{total}] {item_id[:30]} — {kept} kept"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  FINAL REPORT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_final_report(stats: Dict[str, Any]) -> None:
    table = Table(
        title="📊 Run Report",
        box=box.DOUBLE_EDGE,
        border_style="bright_green",
        show_header=True,
        header_style="bold white on green",
    )
    table.add_column("Metric", style="stat_key", min_width=22)
    table.add_column("Count", justify="right", style="stat_val", min_width=8)
    table.add_column("", min_width=10)

    total = stats.get("items", 0)
    found = stats.get("found", 0)
    rate = (found / total * 100) if total > 0 else 0

    for label, count, extra in (
        ("✅ Found",          found,                      f"[green]{rate:.1f}%[/]"),
        ("🤔 Not sure (NS)",  stats.get("not_sure", 0),   ""),
        ("❌ No image (NIF)", stats.get("nif", 0),        ""),
        ("🛑 Aborted",        stats.get("aborted", 0),    ""),
    ):
        table.add_row(label, str(count), extra)

    table.add_section()

    for label, key in (
        ("🔗 Candidates",       "candidates"),
        ("🚫 URL filtered",     "filtered"),
        ("⬇️  Attempted",        "attempted"),
        ("💾 Downloaded",       "downloaded"),
        ("🔄 Retries",          "retried"),
        ("❌ Failed",           "failed"),
        ("📄 Unsupported",      "unsupported"),
        ("👯 Duplicates",       "duplicate"),
        ("📉 Quality rejects",  "quality_rejected"),
        ("⏭️  Cap reached",      "cap_reached"),
    ):
        table.add_row(label, str(stats.get(key, 0)), "")

    table.add_section()

    elapsed = stats.get("elapsed", 0)
    throughput = total / max(elapsed, 0.1)
    table.add_row("⏱️  Elapsed",  f"{elapsed:.1f}s", "")
    table.add_row("🚀 Throughput", f"{throughput:.2f}", "items/sec")
    table.add_row("📦 Total",      str(total), "")

    console.print()
    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SINGLE-IMAGE RESULTS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_key_values(title: str, rows: List[tuple], ok: Optional[bool] = None) -> None:
    """Two-column result table, green/red border for pass/fail."""
    border = "bright_blue" if ok is None else ("green" if ok else "red")
    table = Table(title=title, box=box.DOUBLE_EDGE, border_style=border)
    table.add_column("Metric", style="stat_key")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, value if isinstance(value, Text) else str(value))
    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  GOODBYE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_goodbye(output_path: str, interrupted: bool = False) -> None:
    if interrupted:
        panel = Panel(
            Align.center(Text(
                "⚠️  Interrupted — finished items are on disk\n"
                f"Output: {output_path}",
                style="warning",
            )),
            border_style="yellow",
            title="Stopped",
        )
    else:
        panel = Panel(
            Align.center(Text(
                f"✅ All done!\nOutput: {output_path}",
                style="success",
            )),
            border_style="green",
            title="Complete",
        )
    console.print(panel)

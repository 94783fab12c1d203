"""
Typer callback validators.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from cli.console import console


def validate_csv(path: Optional[Path]) -> Optional[Path]:
    """Validate that CSV file exists."""
    if path is None:
        return None
    if not path.exists():
        console.print(f"[error]CSV file not found: {path}[/]")
        raise typer.BadParameter(f"File not found: {path}")
    if path.suffix.lower() != ".csv":
        console.print(f"[error]Not a CSV file: {path}[/]")
        raise typer.BadParameter(f"Not a CSV: {path}")
    return path


def validate_workers(value: int) -> int:
    if value < 1:
        raise typer.BadParameter("Workers must be >= 1")
    if value > 16:
        console.print("[warning]Warning: >16 concurrent downloads may trip rate limits[/]")
    return value


def validate_profile(value: str) -> str:
    from config.settings import PROFILES

    name = value.strip().lower()
    if name not in PROFILES:
        raise typer.BadParameter(
            f"Unknown profile: {value}. Valid: {', '.join(sorted(PROFILES))}"
        )
    return name

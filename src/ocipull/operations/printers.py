"""
Human-readable output formatting.

Centralizes all CLI output formatting so commands stay thin.
"""
from __future__ import annotations

from typing import Tuple

import typer

from ..pull import PullResult


def _format_bytes(size_bytes: int) -> str:
    """Format byte count as human-readable string (e.g. "1.5 MB", "42 B")."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


def print_pull_summary(result: PullResult, verbose: bool = False) -> None:
    """
    Print what a pull wrote.

    Args:
        result: Successful pull result
        verbose: Also list the layers named by the manifest
    """
    arch, os_name = result.platform
    total = sum(layer.size for layer in result.manifest.layers)

    typer.echo(f"Pulled {result.reference} to {result.layout_dir}")
    typer.echo(f"Platform: {os_name}/{arch}")
    typer.echo(f"Manifest: {result.manifest_digest}")
    typer.echo(f"Config: {result.config_digest}")
    typer.echo(f"Layers: {len(result.manifest.layers)} ({_format_bytes(total)})"
               + (f", {len(result.layers_fetched)} fetched" if result.layers_fetched else ""))

    if verbose:
        for layer in result.manifest.layers:
            marker = "*" if layer.digest in result.layers_fetched else " "
            typer.echo(f"  {marker} {layer.digest} {_format_bytes(layer.size)}")


def print_platform(platform: Tuple[str, str]) -> None:
    arch, os_name = platform
    typer.echo(f"{os_name}/{arch}")

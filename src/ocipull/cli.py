"""
ocipull CLI

Implements the registry verbs with Operations facade integration:
- registry pull: Pull an image into an OCI Image Layout
- registry platform: Show the platform pulls select for
"""
from __future__ import annotations

import logging
import os
from dataclasses import replace
from typing import Optional

import typer

from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import print_platform, print_pull_summary
from .settings import create_settings_from_env

app = typer.Typer(name="ocipull", help="Pull container images into OCI Image Layouts")
registry_app = typer.Typer(help="Registry-related commands")
app.add_typer(registry_app, name="registry")

LOG_ENV_VAR = "OCIPULL_LOG"


def configure_logging(verbose: bool = False) -> None:
    """
    Configure root logging from ``OCIPULL_LOG`` (a level name, default WARNING).

    ``verbose`` forces DEBUG. Unknown level names fall back to WARNING.
    """
    if verbose:
        level = logging.DEBUG
    else:
        name = os.getenv(LOG_ENV_VAR, "WARNING").upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


@registry_app.command()
def pull(
    image: str = typer.Argument(..., help="Image name, e.g. 'alpine'"),
    reference: str = typer.Argument(..., help="Tag or digest, e.g. 'latest'"),
    dest: Optional[str] = typer.Option(None, "--dest", help="Layout directory (default: <cache>/images/<repository>)"),
    layers: bool = typer.Option(False, "--layers", help="Also fetch layer blobs"),
    insecure: bool = typer.Option(False, "--insecure", help="Skip TLS certificate validation"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output"),
) -> None:
    """Pull an image into an OCI Image Layout directory."""
    configure_logging(verbose)

    def _pull() -> None:
        settings = create_settings_from_env()
        if insecure:
            settings = replace(settings, registry_insecure=True)

        ops = Operations(config=OpsConfig(fetch_layers=layers, verbose=verbose), settings=settings)
        result = ops.pull(image, reference, dest=dest)
        print_pull_summary(result, verbose=verbose)

    run_and_exit(_pull)


@registry_app.command()
def platform() -> None:
    """Show the platform (os/architecture) manifests are selected for."""
    configure_logging()

    def _platform() -> None:
        ops = Operations(config=OpsConfig())
        print_platform(ops.platform())

    run_and_exit(_platform)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

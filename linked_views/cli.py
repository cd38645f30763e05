"""Command-line interface for linked-views.

This module provides the Click-based CLI for launching the viewer.
"""

import logging
import os
from pathlib import Path

import click

from linked_views.core.config import COLORMAPS, DEFAULTS

# Global for CLI files and options (loaded after UI starts)
_cli_files = {"points": None, "matrix": None}
_cli_options = {
    "id_field": "id",
    "x_field": "x",
    "y_field": "y",
    "color_field": None,
    "colormap": DEFAULTS.COLORMAP,
    "debug_events": False,
}

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def get_cli_files() -> dict:
    """Get CLI files to load on startup."""
    return _cli_files


def get_cli_options() -> dict:
    """Get CLI options for application configuration."""
    return _cli_options


def _check_native_available() -> bool:
    """Check if pywebview is available for native mode."""
    try:
        import webview  # noqa: F401

        return True
    except ImportError:
        return False


@click.command()
@click.argument("points", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--matrix", "-m", type=click.Path(exists=True, dir_okay=False), help="Sample x gene matrix (CSV/TSV)")
@click.option("--id-field", default="id", show_default=True, help="Id column of the points table")
@click.option("--x", "x_field", default="x", show_default=True, help="Point plot x column")
@click.option("--y", "y_field", default="y", show_default=True, help="Point plot y column")
@click.option("--color", "color_field", default=None, help="Categorical column used to colour points")
@click.option(
    "--colormap",
    type=click.Choice(sorted(COLORMAPS)),
    default=DEFAULTS.COLORMAP,
    show_default=True,
    help="Heatmap colormap",
)
@click.option("--port", "-p", default=8080, help="Port to run the server on")
@click.option("--host", "-H", default="0.0.0.0", help="Host to bind to")
@click.option("--open/--no-open", "-o/-n", "open_browser", default=True, help="Open browser automatically")
@click.option("--native/--browser", default=False, help="Run in native window or browser mode (default)")
@click.option("--dark/--light", default=True, help="Use dark mode (default) or light mode")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging level",
)
@click.option("--debug-events", is_flag=True, default=False, help="Log every event emitted between views")
def main(
    points, matrix, id_field, x_field, y_field, color_field, colormap,
    port, host, open_browser, native, dark, log_level, debug_events,
):
    """linked-views - Coordinated point plot, matrix and table views.

    Selecting, hovering or brushing in one view is reflected in all others.

    \b
    Examples:
        linked-views                                  # Start empty
        linked-views samples.csv                      # Point plot + table
        linked-views samples.csv -m expression.tsv    # With sample x gene matrix
        linked-views samples.csv --x pc1 --y pc2 --color tissue
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _cli_files["points"] = str(Path(points).absolute()) if points else None
    _cli_files["matrix"] = str(Path(matrix).absolute()) if matrix else None

    _cli_options["id_field"] = id_field
    _cli_options["x_field"] = x_field
    _cli_options["y_field"] = y_field
    _cli_options["color_field"] = color_field
    _cli_options["colormap"] = colormap
    _cli_options["debug_events"] = debug_events

    use_native = native
    if native and not _check_native_available():
        click.echo(
            "Warning: Native mode requested but pywebview is not installed. "
            "Falling back to browser mode.",
            err=True,
        )
        use_native = False

    # Import here to avoid slow startup for --help
    from nicegui import ui

    import linked_views.app  # noqa: F401

    os.environ["LINKED_VIEWS_DARK_MODE"] = "1" if dark else "0"

    ui.run(
        title="linked-views",
        host=host,
        port=port,
        reload=False,
        show=open_browser and not use_native,
        native=use_native,
        window_size=(1400, 900) if use_native else None,
        dark=dark,
        reconnect_timeout=60.0,
    )


if __name__ == "__main__":
    main()

"""Command-line surface: argparse router and output rendering."""

from listing_store.ui.cli import CLIError, build_parser, run_cli
from listing_store.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "run_cli"]

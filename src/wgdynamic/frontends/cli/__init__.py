"""wgdynamic command-line interface."""

from wgdynamic.frontends.cli.main import cli, main

__all__ = ["cli", "main"]

"""Command line interface."""

from bggtop.cli.main import cli


__all__ = ["cli"]

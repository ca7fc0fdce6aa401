"""CLI entry for Huginn."""

from .main import cli


def main() -> None:
    """Console entry point."""
    cli()

__all__ = ["cli", "main"]

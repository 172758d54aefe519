"""docspine command-line interface."""

from docspine.cli.app import app

__all__ = ["app"]

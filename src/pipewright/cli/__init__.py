"""Pipewright command line interface."""

from pipewright.cli.main import main

__all__ = ["main"]

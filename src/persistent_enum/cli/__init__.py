"""
CLI layer for persistent-enum.

Terminal transport only: argument parsing, coloured output and table
formatting.  Reconciliation lives in :mod:`persistent_enum.holder`.

Entry point::

    persistent-enum --help
"""

from persistent_enum.cli.app import app

__all__ = ["app"]

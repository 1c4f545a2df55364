"""BoxWatch command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``boxwatch`` script).
"""

from boxwatch.cli.main import cli

__all__ = ["cli"]

"""Command-line interface (``python -m stats_import.cli``)."""

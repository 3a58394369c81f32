"""Command-line interface for tfclient."""

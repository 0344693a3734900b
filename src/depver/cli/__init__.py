"""Command-line interface for depver."""

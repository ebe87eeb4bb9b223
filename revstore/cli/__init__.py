"""Command-line interface of the revision store."""

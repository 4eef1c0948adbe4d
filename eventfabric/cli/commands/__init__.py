"""CLI commands package."""

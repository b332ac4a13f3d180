"""CLI for mail-journal."""

"""Utility functions for mail-journal."""

from mail_journal.utils.helpers import ensure_dir, get_data_path

__all__ = ["ensure_dir", "get_data_path"]

"""Configuration module for mail-journal."""

from mail_journal.config.loader import get_config_path, load_config, save_config
from mail_journal.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]

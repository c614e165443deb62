"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from school_archive.config import load_config, StoreProfile, ArchiveConfig
"""

from school_archive.config.loader import load_config
from school_archive.config.models import ArchiveConfig, ArchiveSettings, StoreProfile

__all__ = ["load_config", "ArchiveConfig", "ArchiveSettings", "StoreProfile"]

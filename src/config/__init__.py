"""
Configuration module for the learning service.

This module provides centralized configuration management using pydantic-settings.
All environment variables and configuration values should be accessed through this module.

Usage:
    from config import get_settings, LearningFlags

    settings = get_settings()
    flags = LearningFlags.from_settings(settings)
"""

from config.feature_flags import LearningFlags
from config.settings import Settings, get_settings

__all__ = ["LearningFlags", "Settings", "get_settings"]

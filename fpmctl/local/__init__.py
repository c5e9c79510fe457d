"""
Local package for fpmctl.

This package provides the effective configuration and the php-fpm supervisor.
"""

from .config import effective_settings

__all__ = ["effective_settings"]

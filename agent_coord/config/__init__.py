"""
Configuration module for agent coordination.
"""
from .settings import Settings
from .logging import configure_logging

__all__ = [
    'Settings',
    'configure_logging',
]

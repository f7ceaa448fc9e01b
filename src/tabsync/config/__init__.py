"""Application configuration helpers."""

from __future__ import annotations

from .association import AssociationConfig, get_association_config
from .env import optional_positive_int
from .errors import ConfigurationError
from .logging import configure_logging

__all__ = [
    "AssociationConfig",
    "ConfigurationError",
    "configure_logging",
    "get_association_config",
    "optional_positive_int",
]

"""Configuration package for rakit."""

from .config import RakitConfig
from .constants import DEFAULTS

__all__ = ["RakitConfig", "DEFAULTS"]

"""
Configuration modules for island generation.
"""

from .island_config import GenerationTuning, IslandConfig
from .settings import Settings, settings

__all__ = ['GenerationTuning', 'IslandConfig', 'Settings', 'settings']

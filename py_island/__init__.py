"""
Procedural island generation: terrain, placement, paths and water.
"""

__version__ = "0.1.0"

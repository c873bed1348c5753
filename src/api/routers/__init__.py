"""
API Routers package.
"""

from . import queries

__all__ = ["queries"]

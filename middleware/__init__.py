"""
中間件模組
"""

from .compression import GzipMiddleware

__all__ = [
    "GzipMiddleware",
]

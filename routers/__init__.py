"""
API 路由模組
"""

from .system import router as system_router

__all__ = [
    "system_router",
]

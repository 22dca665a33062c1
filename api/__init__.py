"""
API 路由模块
"""

from . import routes

__all__ = ["routes"]

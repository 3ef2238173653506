"""
Progress Admin API.

HTTP surface over ProgressService for operators and tooling.
"""

from .router import create_app, router

__all__ = ["create_app", "router"]

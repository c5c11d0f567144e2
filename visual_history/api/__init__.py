"""HTTP surface for the command protocol."""

from .dispatcher import CommandDispatcher
from .server import build_engine, create_app

__all__ = ["CommandDispatcher", "build_engine", "create_app"]

"""API layer for Smart Voyage."""
from .routes import router

__all__ = ["router"]

"""HTTP surface: negotiation routes, uploads, and error handlers."""

from dropit.api.errors import register_exception_handlers
from dropit.api.routes import router

__all__ = ["register_exception_handlers", "router"]

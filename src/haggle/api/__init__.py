"""HTTP API surface."""

from haggle.api.routes import register_error_handlers, router

__all__ = ["register_error_handlers", "router"]

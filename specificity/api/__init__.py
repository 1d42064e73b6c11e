"""API Package - FastAPI routes, middleware, and dependencies.

Components:
- routes: API endpoint routers (health, providers, query metrics)
- middleware: Request/response middleware (logging)
- deps: FastAPI dependency injection functions

Note: Import routers directly from specificity.api.routes to avoid circular imports.
"""

__all__ = ["routes", "middleware", "deps"]

"""Routes Package - API endpoint definitions.

Note: Import routers directly from individual modules to avoid circular imports.
Example: from specificity.api.routes.health import router as health_router
"""

__all__ = ["health"]

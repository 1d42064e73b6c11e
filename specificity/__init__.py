"""Specificity resilience core - Source Package.

Provider health tracking, failover selection and backend query metrics
for the Specificity multi-advisor spec generator.

Note: Import `app` directly from `specificity.main` to avoid circular imports.
"""

__all__ = ["main", "api", "core", "database", "observability", "resilience"]

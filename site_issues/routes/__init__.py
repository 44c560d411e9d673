"""API route modules for FastAPI endpoints."""

from site_issues.routes.issues import router as issues_router

__all__ = ["issues_router"]

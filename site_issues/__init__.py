"""FastAPI Site Issue Tracker Application.

A FastAPI application for tracking maintenance / location issues with:
- RESTful CRUD operations
- OPEN/SOLVED status transitions with solved/submitted time bookkeeping
- Statistics aggregation
- Excel export
- SQLAlchemy ORM with async support
"""

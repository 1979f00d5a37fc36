"""
FastAPI REST API Layer for script-reader.

This package defines all HTTP endpoints:
    - routes.py: Generation, progress, history and health endpoints
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""

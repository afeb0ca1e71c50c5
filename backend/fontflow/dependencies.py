"""
FontFlow Backend — Shared FastAPI Dependencies
================================================

The object store is built once in create_app() and kept on app.state; routes
receive it through get_object_store() so tests can override it with
app.dependency_overrides.
"""

from fastapi import Request

from fontflow.services.storage import ObjectStore


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store

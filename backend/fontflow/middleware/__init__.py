# Middleware package init
"""
FontFlow Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: correlation ID for logs and error bodies
    2. Logging: access line with status and duration (reads the request ID)
    3. GZip / CORS: FastAPI's stock middleware

    Responses travel back through the chain in reverse, so the access log
    sees the final status code and the request ID lands in the headers.
"""

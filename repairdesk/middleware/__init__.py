"""
RepairDesk Backend - Middleware Package
=========================================

Cross-cutting concerns applied to every request.

Middleware chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

Responses travel back through the same chain in reverse, so the request ID
header is attached and the logging middleware sees the final status code.
"""

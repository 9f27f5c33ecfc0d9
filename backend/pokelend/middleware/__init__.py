# Middleware package init
"""
PokeLend Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (execution order):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: reject abusive clients before any database work
    2. Request ID: correlation id for logs and error bodies
    3. Logging: method, path, status and duration, tagged with the request id

    Responses travel the chain in reverse, so the request id header and the
    measured duration are both available when the response leaves.
"""

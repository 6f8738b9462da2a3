# Middleware package init
"""
Marketplace Backend — Middleware Package
=========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID first, so every later log line can be correlated
    2. Logging records status and duration on the way back out
    3. CORS answers preflight requests closest to the routes
"""

# Routes package init
"""
Marketplace Backend — API Routes Package
=========================================

What:  HTTP handlers, all mounted under /api/v1.

Route Inventory:
    - auth.py:        POST /auth/register, /auth/login,
                      /auth/request-verification, /auth/verify-token
    - providers.py:   POST|PATCH /providers, GET /providers/{id},
                      POST|GET /providers/images,
                      POST|GET /providers/business-hours,
                      PUT /providers/business-hours/{id}
    - categories.py:  POST|GET /categories
    - services.py:    POST|GET /services
    - staff.py:       POST|GET /staff
    - health.py:      GET /healthcheck

Design Principle:
    Handlers stay thin: decode the body, run the Validator, call a service
    or the write orchestrator, wrap the result in its envelope.
"""

from fastapi import APIRouter

from marketplace.routes import auth, categories, health, providers, services, staff

API_PREFIX = "/api/v1"

api_router = APIRouter(prefix=API_PREFIX)
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(providers.router)
api_router.include_router(categories.router)
api_router.include_router(services.router)
api_router.include_router(staff.router)

"""
Marketplace Backend — Application Package
==========================================

What: A multi-tenant marketplace API. Providers (salons and the like) set up
      staff, services, categories, business hours and images; clients
      authenticate and browse providers.

Architecture Note:

    ┌─────────────────────────────────────┐
    │   Routes + Dependencies (API)       │  ← HTTP concerns, auth boundary
    ├─────────────────────────────────────┤
    │   Forms / Schemas + Validator       │  ← decoding and field rules
    ├─────────────────────────────────────┤
    │   Services + Write Orchestrator     │  ← reads, multi-table writes
    ├─────────────────────────────────────┤
    │   Models / Database │ Storage │ Mail│  ← persistence and side effects
    └─────────────────────────────────────┘

    Every collaborator is built once into an AppContext at startup and
    reached through FastAPI dependencies; no module holds a live singleton.
"""

__version__ = "1.0.0"

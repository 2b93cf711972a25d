"""Halaqa school platform backend.

Lifecycle-driven records for a Quran-memorization school, isolated per
school (tenant):

Modules:
    - state_machines: assignment, homework and target transition engines
    - permissions: role x relationship x school capability predicates
    - repositories: row access and the compare-and-swap primitive
    - services: orchestration (permission, engine, write, event, notify)
    - routes: FastAPI routers
"""

__version__ = "0.1.0"

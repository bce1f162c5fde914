"""Pydantic Schemas — request/response validation for API endpoints.

Invariants:
    - Schemas validate at the system boundary (request bodies, API responses)
    - Domain enums from core/ used for state fields

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""

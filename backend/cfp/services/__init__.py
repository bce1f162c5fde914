"""Service Layer — async operations over the database, one transaction per call.

Invariants:
    - Business rules are decided by cfp.core; services only load, lock and persist
    - Every mutating method runs through run_in_transaction (commit or full rollback)
    - Services raise CfpError subclasses only; the API layer maps them to HTTP

Design Decisions:
    - Classes bound to a session (like the route handlers' DB dependency): tests build
      them directly against an in-memory database
"""

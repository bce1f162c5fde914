"""Core Layer — pure domain rules, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: transition table, permission
      predicates, overlap test and rating statistics are testable without a database
"""

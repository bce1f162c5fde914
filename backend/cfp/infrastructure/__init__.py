"""Infrastructure Layer — database engine, transactions, clock and logging.

Invariants:
    - Infrastructure never imports service logic
    - Every storage failure leaves this layer as a typed CfpError

Design Decisions:
    - Resilient wrappers over raw SQLAlchemy: retry and error mapping live in one place
"""

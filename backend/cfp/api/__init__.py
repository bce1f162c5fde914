"""API Layer — FastAPI routes, identity dependency and error handlers.

Invariants:
    - Routes translate HTTP to service calls; no business rule lives here
    - Every CfpError leaves as the JSON envelope from CfpError.to_response()
"""

"""Pydantic Schemas — request/response validation for API endpoints.

Invariants:
    - Schemas validate at system boundary (user input, API responses)
    - Wallet addresses are checked against the 0x + 40 hex pattern and lower-cased here
    - Domain types from core/ used for enum fields

Design Decisions:
    - Separate from models: schemas are the HTTP contract, models are the stored record
    - Response models read ORM rows directly (from_attributes): one field list per contract
"""

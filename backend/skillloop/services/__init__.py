"""Services — imperative shell: each service owns one unit of work per call and does the IO.

Invariants:
    - Pure rules live in core/; services call them before their first write
    - Services commit through infrastructure.database.atomic and only append to the outbox
"""

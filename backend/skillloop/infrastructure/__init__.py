"""Infrastructure Layer — database sessions, logging, and external collaborator adapters.

Invariants:
    - Only this layer talks to SQLAlchemy engines, log handlers, and collaborator transports

Design Decisions:
    - Collaborators (notification, minting) implement core/repository_protocols.py
"""

"""Persistence base — the declarative Base every model in models/ registers with."""

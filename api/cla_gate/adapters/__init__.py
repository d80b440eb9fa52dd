"""Adapters for external storage: SigningStore in memory or SQL."""

from cla_gate.adapters.signing_store import InMemorySigningStore
from cla_gate.adapters.sql_signing_store import SqlSigningStore

__all__ = ["InMemorySigningStore", "SqlSigningStore"]

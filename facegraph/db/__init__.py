"""
Database layer for the Face Graph.

Provides interfaces and implementations for:
- Dolt: versioned SQL ledger for profiles, karma events, ripples, feuds, debts
- Neo4j: graph database for directed social links

Implementations:
- InMemory*: For testing and embedding (no external dependencies)
- Real drivers: For production (requires running databases)
"""

from __future__ import annotations

from facegraph.db.dolt import (
    DoltConnection,
    DoltLedgerRepository,
    init_dolt_schema,
)
from facegraph.db.interfaces import GraphRepository, LedgerRepository
from facegraph.db.memory import (
    InMemoryGraphRepository,
    InMemoryLedgerRepository,
)
from facegraph.db.neo4j_driver import (
    Neo4jConnection,
    Neo4jGraphRepository,
    init_neo4j_schema,
)

__all__ = [
    # Protocol interfaces
    "GraphRepository",
    "LedgerRepository",
    # In-memory implementations
    "InMemoryGraphRepository",
    "InMemoryLedgerRepository",
    # Real database implementations
    "DoltConnection",
    "DoltLedgerRepository",
    "init_dolt_schema",
    "Neo4jConnection",
    "Neo4jGraphRepository",
    "init_neo4j_schema",
]

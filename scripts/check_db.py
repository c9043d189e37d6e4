#!/usr/bin/env python3
"""
Database health check and initialization script.

Usage:
    python scripts/check_db.py          # Check connectivity
    python scripts/check_db.py --init   # Initialize schemas
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

# Make the facegraph package importable without installing it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from facegraph.db import (  # noqa: E402
    DoltConnection,
    Neo4jConnection,
    init_dolt_schema,
    init_neo4j_schema,
)
from facegraph.errors import PersistenceError  # noqa: E402
from facegraph.logging_config import setup_logging  # noqa: E402

logger = logging.getLogger("check_db")


def check_dolt() -> bool:
    """Check Dolt database connectivity."""
    conn = DoltConnection.from_env()
    logger.info("Checking Dolt at %s:%s...", conn.config["host"], conn.config["port"])

    try:
        db_conn = conn.get_connection()
    except PersistenceError as e:
        logger.error("Dolt: %s", e)
        return False

    connected = db_conn.is_connected()
    conn.close()
    logger.info("Dolt: %s", "Connected" if connected else "Connection failed")
    return connected


def check_neo4j() -> bool:
    """Check Neo4j database connectivity."""
    conn = Neo4jConnection.from_env()
    logger.info("Checking Neo4j at %s...", conn.uri)

    connected = conn.verify_connectivity()
    conn.close()
    logger.info("Neo4j: %s", "Connected" if connected else "Connection failed")
    return connected


def init_dolt() -> bool:
    """Initialize Dolt schema."""
    logger.info("Initializing Dolt schema...")
    conn = DoltConnection.from_env()
    try:
        init_dolt_schema(conn)
    except PersistenceError as e:
        logger.error("Dolt init error: %s", e)
        return False
    finally:
        conn.close()
    logger.info("Dolt schema initialized")
    return True


def init_neo4j() -> bool:
    """Initialize Neo4j schema."""
    logger.info("Initializing Neo4j schema...")
    conn = Neo4jConnection.from_env()
    try:
        init_neo4j_schema(conn)
    except PersistenceError as e:
        logger.error("Neo4j init error: %s", e)
        return False
    finally:
        conn.close()
    logger.info("Neo4j schema initialized")
    return True


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Check and initialize Face Graph databases")
    parser.add_argument("--init", action="store_true", help="Initialize database schemas")
    parser.add_argument("--log-level", default=os.getenv("FACEGRAPH_LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    setup_logging(args.log_level)

    dolt_ok = check_dolt()
    neo4j_ok = check_neo4j()

    if args.init:
        if dolt_ok:
            dolt_ok = init_dolt()
        if neo4j_ok:
            neo4j_ok = init_neo4j()

    logger.info("Dolt:  %s", "OK" if dolt_ok else "FAILED")
    logger.info("Neo4j: %s", "OK" if neo4j_ok else "FAILED")

    return 0 if (dolt_ok and neo4j_ok) else 1


if __name__ == "__main__":
    sys.exit(main())

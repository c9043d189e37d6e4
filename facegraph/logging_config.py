"""
Logging setup for scripts and embedding services.

Call setup_logging() once at startup. Every module in the package logs
through its own ``logging.getLogger(__name__)``.

Level mapping:
  DEBUG   - ripple traversal, suppressed ripples, profile creation
  INFO    - recorded karma, feud and debt lifecycle, faded ripples
  WARNING - idempotent no-ops, ripple persistence failures, rejected proposals,
            rolled-back karma events
  ERROR   - rollback steps that could not be written back
"""

from __future__ import annotations

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger and quiet the database drivers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
        stream=sys.stdout,
        force=True,
    )

    for name in ("neo4j", "mysql.connector"):
        logging.getLogger(name).setLevel(logging.WARNING)

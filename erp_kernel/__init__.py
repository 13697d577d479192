"""
ERP Kernel - rental stock and salary cycle reconciliation core.

An append-only, tenant-scoped stock ledger with:
- Idempotent rental start / return events
- Store-enforced uniqueness for structured ledger events
- Explicit clock injection (no wall-clock reads in domain code)
- Typed exceptions and structured JSON logging
"""

__version__ = "0.1.0"

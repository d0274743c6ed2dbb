"""
Sync Kernel - shared foundations for the ledger auto-sync service.

Provides the pieces every other layer depends on:
- Typed exceptions with machine-readable codes
- Structured JSON logging with context propagation
- An injectable clock so scheduling stays deterministic under test
"""

__version__ = "0.1.0"

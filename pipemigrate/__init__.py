"""
Record Migration Engine

Moves records from a source into a destination store through configurable
chains of process plugins, keeping a durable identity map between source and
destination records.

Supports:
- Reusable process pipelines with shorthand steps and placeholders
- Nested pipelines composed from other pipelines
- Per-row skip and batch-fatal error semantics
- Idempotent re-runs with content-hash change detection
- Policy-driven rollback (delete or preserve destination entities)
- Message log correlated to source identities for reporting
"""

__version__ = "0.1.0"

"""Core Layer — pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Key derivation, path derivation, and result aggregation are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: the orchestrator (services/)
      does the IO, core/ decides what the IO should touch
"""

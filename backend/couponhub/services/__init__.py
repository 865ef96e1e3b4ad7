"""Services Layer — the write-path consistency pipeline and its stages.

Invariants:
    - One stage per module (cache invalidation, broadcast, revalidation)
    - Stages return StageResult values; only the orchestrator composes them

Design Decisions:
    - Orchestrator depends on stage objects, stages depend on boundary protocols
      (core/repository_protocols.py), never on concrete adapters
"""

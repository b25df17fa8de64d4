"""Services Layer — async orchestration around the pure core.

Invariants:
    - Services own the IO ordering (read -> pure decision -> write); decisions live in core/
    - Collaborators (stores, identity provider, renderer) arrive through the constructor

Design Decisions:
    - One service per concern: auth session, quota metering, notification dispatch,
      preferences (ADR: ExMA no god objects)
"""

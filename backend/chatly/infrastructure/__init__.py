"""Infrastructure Layer — SQL stores, collaborator wiring and cross-cutting concerns.

Invariants:
    - Stores satisfy the Protocols in core/repository_protocols.py structurally
    - Store failures propagate as raised exceptions; services decide what is fatal

Design Decisions:
    - Host-supplied collaborators (identity provider, renderer) registered once at
      startup rather than imported (ADR: ExMA single responsibility)
"""

"""Infrastructure Layer — datastore adapters and cross-cutting concerns.

Invariants:
    - Store classes implement the Protocols in core/repository_protocols.py
    - Every SQLAlchemy exception is mapped to DatabaseError before leaving a store

Design Decisions:
    - One adapter file per collaborator for locality
"""

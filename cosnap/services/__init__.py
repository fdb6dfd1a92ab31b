"""Services Layer — FlagLifecycle and OfferLifecycle orchestration.

Invariants:
    - Services talk to IO only through core Protocols (stores, sink, unit of work)
    - Business outcomes raised as CoSnapError subclasses, never as bare exceptions

Design Decisions:
    - Impureim sandwich: pure policy checks, then store IO, then best-effort side effects
"""

"""Core Layer — pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - All functions are pure; randomness and clocks are injected

Design Decisions:
    - Functional core separated from imperative shell: quota, privacy and
      transition rules are testable without a database
"""

"""
Client subsystem.

Components:
- store.py: ClientStore, the in-memory mirror the views render from
- sync.py: TaskBoardClient, two-phase (optimistic) mutations and hydration
"""

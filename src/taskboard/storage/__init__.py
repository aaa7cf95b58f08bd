"""
Storage subsystem.

Components:
- models.py: records (TodoList, Task, Subtask, Label, TaskLabel, TaskLog) and patches
- database.py: SQLite schema, connections, transactions, default list bootstrap
- repository.py: CRUD per entity, one transaction per call
"""

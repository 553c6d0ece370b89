"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Category, Tag, TaskPriority, FilterState)
- task_store.py: SQLite-backed unit of work (insert/delete/commit/rollback/fetch)
- task_query.py: filter predicate + sort order
- task_stats.py: completion / category / priority counts
- task_manager.py: façade coordinating store, query and reminders
"""

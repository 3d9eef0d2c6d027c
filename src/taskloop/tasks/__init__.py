"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskState)
- task_registry.py: kind -> handler mapping
- memory_queue.py: in-memory reference queue backend
- task_executor.py: runs one task and settles it (ack / retry / reject)
- dispatcher.py: enqueue API + bounded-concurrency dispatch loop
- builtin_handlers.py: demo handlers used by the CLI
"""

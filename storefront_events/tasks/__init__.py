"""Background tasks (taskiq).

Run a worker:  taskiq worker storefront_events.tasks.broker:broker
Run schedules: taskiq scheduler storefront_events.tasks.broker:scheduler
"""

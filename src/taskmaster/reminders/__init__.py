"""
Reminder subsystem.

Components:
- triggers.py: calendar components and next-fire computation
- notification_models.py: notification request/content, authorization status
- notification_center.py: in-process notification service + delivery loop
- reminder_scheduler.py: one live reminder per task (schedule/cancel/update/resolve)
"""

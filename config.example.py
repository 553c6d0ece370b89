# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKMASTER_APP_NAME": "App display name (default: taskmaster).",
    "TASKMASTER_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "TASKMASTER_DATA_DIR": "Local data directory (default: .local/taskmaster).",
    "TASKMASTER_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TASKMASTER_LOG_DIR": "Directory for taskmaster.log (default: <data_dir>).",
    # Reminders
    "TASKMASTER_REMINDER_TITLE": "Title shown on reminder notifications (default: Task reminder).",
    "TASKMASTER_DELIVERY_INTERVAL_SECONDS": "Delivery loop polling interval (default: 15, min 0.5).",
    "TASKMASTER_NOTIFICATIONS_ENABLED": "Grant notification permission when asked (true/false).",
    # Tasks
    "TASKMASTER_DEFAULT_CATEGORY_COLOR": "Color for new categories (default: #007AFF).",
    # Front end
    "TASKMASTER_CONSOLE_ENABLED": "Run the console REPL (true/false).",
}

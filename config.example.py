# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLOOP_APP_NAME": "App display name (default: taskloop).",
    "TASKLOOP_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKLOOP_LOG_DIR": "Directory for taskloop.log (default: .local/taskloop).",
    # Dispatch loop
    "TASKLOOP_POLLING_INTERVAL_MS": "Wait after an empty or failed dequeue, in ms (default: 1000).",
    "TASKLOOP_SATURATED_POLL_MS": "Re-check interval while at max concurrency, in ms (default: 100).",
    "TASKLOOP_MAX_CONCURRENCY": "Max tasks executing at once (default: 1).",
    # Health reporter
    "TASKLOOP_HEALTH_PORT": "Serve GET /health on this port (unset: disabled).",
    "TASKLOOP_HEALTH_HOST": "Bind address for the health reporter (default: 127.0.0.1).",
    # Memory backend
    "TASKLOOP_REJECT_POLICY": "requeue | discard: what the memory queue does with rejected tasks (default: requeue).",
    "TASKLOOP_MAX_REJECTIONS": "With requeue: discard a task after this many rejections (unset: unbounded).",
}

# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer env vars / `.env`. Only these names are read:
MAX_CONCURRENCY, POLLING_INTERVAL_MS, HEALTH_PORT, LOG_LEVEL.
"""

# MAX_CONCURRENCY = 4
# POLLING_INTERVAL_MS = 250
# HEALTH_PORT = 8080
# LOG_LEVEL = "DEBUG"

"""HTTP health reporter."""

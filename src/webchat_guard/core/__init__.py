"""Core configuration, quotas and decision logic."""

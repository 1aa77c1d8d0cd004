"""riskwatch - alerting and escalation engine for project workspaces."""

__version__ = "0.1.0"

"""
Traffic protection simulator service.

Produces protected vs. unprotected metric snapshots for synthetic traffic
scenarios and keeps the latest simulation durable across restarts.
"""

__version__ = "0.1.0"

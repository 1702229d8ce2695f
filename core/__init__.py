"""Core module - ambient services for the dashboard data kernel.

Configuration, observability (logging, metrics) and the key-value storage
collaborator live here. Dashboard semantics belong in /dashboard/.
"""

__version__ = "1.0.0"

"""Monthly ledger and recurring-entry engine."""

__all__ = [
    "models",
    "errors",
    "config",
    "normalizer",
    "analytics",
    "recurring",
    "cascade",
    "store",
    "session",
    "storage",
    "reports",
    "webapp",
    "db",
    "cli",
    "logging_setup",
]

__version__ = "0.1.0"

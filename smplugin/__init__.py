"""Software-management plugin — reconcile installed packages through a backend."""

__version__ = "0.1.0"

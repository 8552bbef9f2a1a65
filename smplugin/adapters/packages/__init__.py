"""Package-manager backends."""

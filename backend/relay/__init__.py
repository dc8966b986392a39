"""Admin/caller signaling relay."""

__version__ = "1.0.0"

"""buspolicy - access-control policy loader for a message bus proxy."""

__version__ = "0.1.0"
__logo__ = "🚌"

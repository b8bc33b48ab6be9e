"""CLI module for buspolicy."""

"""Huddle: a shared task board with drag-to-reorder lanes and a small event calendar."""

__version__ = "1.0.0"

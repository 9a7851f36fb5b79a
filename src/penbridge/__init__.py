"""Smartpen bridge: reconcile handwritten strokes with knowledge-base blocks."""

__version__ = "0.1.0"

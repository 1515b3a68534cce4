"""Guided multi-step image generation workflows."""

__version__ = "1.0.0"

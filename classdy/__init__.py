"""Classdy: class schedule and attendance tracker."""

__version__ = "1.0.0"

"""Locator synthesis, resolution and step replay for recorded browser interactions."""

__version__ = "0.1.0"

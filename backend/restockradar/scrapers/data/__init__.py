"""Versioned static data shipped with the crawler."""

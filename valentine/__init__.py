"""Save, restore and share Valentine cards through a versioned snapshot store."""

__version__ = "0.1.0"

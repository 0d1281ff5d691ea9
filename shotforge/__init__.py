"""Shot generation: payload compilation and engine orchestration."""

__version__ = "0.1.0"

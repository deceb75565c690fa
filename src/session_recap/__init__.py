"""Session Recap: tracks what happened during an editing session."""

__version__ = "0.1.0"

__all__ = ["__version__"]

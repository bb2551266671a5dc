"""devcrew: autonomous planning, implementation and verification teams."""

__version__ = "0.3.0"

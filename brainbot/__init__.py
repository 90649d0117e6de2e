"""brainbot: decision engine for an autonomous device assistant."""

__version__ = "0.3.0"

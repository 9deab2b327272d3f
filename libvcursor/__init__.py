"""Vector cursor themes with animated transitions and legacy cursor fallback."""

__version__ = "0.1.0"

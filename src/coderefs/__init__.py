"""Find feature flag references in a source tree and condense them into hunks."""

__version__ = "0.3.0"

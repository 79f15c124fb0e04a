"""Find and delete stale AWS resources across regions, through a supplied client factory."""

__version__ = "0.1.0"
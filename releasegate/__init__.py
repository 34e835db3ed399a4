"""releasegate - release approval and deployment scheduling workflow."""

__version__ = "0.1.0"

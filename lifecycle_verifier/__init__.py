"""Build a container image, run it, verify it answers HTTP 200 and always tear it down."""

__version__ = "0.1.0"

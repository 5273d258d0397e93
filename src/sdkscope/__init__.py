"""sdkscope - SDK evidence scanner for Android packages."""

__version__ = "0.1.0"

"""Image upload pipeline: validation, transfer engines and upload sessions."""

__version__ = "1.0.0"

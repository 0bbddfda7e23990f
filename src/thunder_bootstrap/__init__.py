"""Thunder bootstrap - local server lifecycle and idempotent initial-data provisioning."""

__version__ = "0.1.0"

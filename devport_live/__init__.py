"""Live view of local TCP/UDP ports and the processes that own them."""

__version__ = "0.1.0"

"""HomeLink - home automation client with local/cloud transport failover."""

__version__ = "0.1.0"

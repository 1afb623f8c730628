"""Double Ratchet key management for exchanging encrypted messages between two parties."""

__version__ = "0.1.0"
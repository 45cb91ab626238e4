"""bsnguard — BSN pseudonymisation gateway for document sharing."""

__version__ = "0.1.0"

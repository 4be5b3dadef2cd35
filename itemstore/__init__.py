"""
Semantic item store.
Knowledge items with a time-bounded lifetime, lexical search and brute-force
embedding similarity search over a pluggable key-value store.
"""

__version__ = "1.0.0"

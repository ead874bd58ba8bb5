"""Storage layer, binary codecs and inspection tools for an LMDB-backed search index."""

__version__ = "0.1.0"
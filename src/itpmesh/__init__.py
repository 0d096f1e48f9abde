"""itpmesh: deduplicating mesh converter for ITP runtime assets."""

__version__ = "0.3.0"

"""Maps Harvester: collect, filter and rank business listings from a map search."""

__version__ = "0.1.0"

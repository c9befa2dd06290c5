"""slicewise: adaptive partitioning of search indexes into bounded slices."""

__version__ = "0.1.0"

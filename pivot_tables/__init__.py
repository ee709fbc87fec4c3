"""Memory-bounded pivot tables (sum/count/mean by group) over delimited files and in-memory rows."""

__version__ = "1.0.0"

"""Building blocks for SQL migrations: parsing, dialect queries, version resolution, locking."""

__version__ = "0.1.0"
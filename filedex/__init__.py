"""filedex: a locate replacement that catalogs files with content digests."""

__version__ = "0.1.0"

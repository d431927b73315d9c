"""
Panel upload service.

This package provides a FastAPI application that ingests panel images,
derives a full-size and a thumbnail WebP rendition, records each panel in
a SQL metadata store and serves the renditions back as static files.
"""

__version__ = "0.1.0"

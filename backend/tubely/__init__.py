"""
Tubely Media Ingestion Service

This package contains the FastAPI application that accepts authenticated
thumbnail and video uploads, stores them on local disk or in an
S3-compatible object store, and records the resulting public URL on the
video's metadata record.
"""

__version__ = "1.0.0"

"""Bucket uploader.

Streams a local file to an S3-compatible bucket (e.g. Cloudflare R2)
with concurrent multipart uploads, progress reporting and cooperative
cancellation, and optionally deletes the local copy afterwards.
"""

__version__ = "1.0.0"

from bucket_uploader.cli import main

__all__ = ["main", "__version__"]

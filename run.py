#!/usr/bin/env python3
"""
Bucket Uploader

Upload a local file to an S3-compatible bucket, optionally deleting it
once the upload is committed.

Usage:
    python run.py path/to/file            # Upload using S3_* settings
    python run.py path/to/file -d         # Delete the local file afterwards
    python run.py path/to/file -q         # Quiet mode (no progress lines)
    python run.py path/to/file --acl public-read
"""

import sys
from bucket_uploader.cli import main

if __name__ == "__main__":
    sys.exit(main())

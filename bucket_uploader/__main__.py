import sys

from bucket_uploader.cli import main

sys.exit(main())

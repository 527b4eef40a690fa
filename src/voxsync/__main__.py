"""Allow running as `python -m voxsync`."""

import sys

from .main import main

sys.exit(main())

"""Allow running as python -m gitoverlay."""

import sys

from .cli import main

sys.exit(main())

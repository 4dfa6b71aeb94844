"""Allow ``python -m catalog_collector``."""

import sys

from .main import main

sys.exit(main())

"""Allow ``python -m stresspro``."""

import sys

from stresspro.cli import main

sys.exit(main())

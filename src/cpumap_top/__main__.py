"""Allow ``python -m cpumap_top``."""

import sys

from cpumap_top.cli import main

sys.exit(main())

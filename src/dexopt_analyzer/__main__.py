"""Allow `python -m dexopt_analyzer`."""

import sys

from dexopt_analyzer.cli.main import main

sys.exit(main())

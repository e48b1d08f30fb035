"""Allow ``python -m filedex``."""

import sys

from filedex.main import main

sys.exit(main())

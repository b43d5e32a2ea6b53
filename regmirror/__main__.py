"""Allow ``python -m regmirror``."""

import sys

from regmirror.cli import main

sys.exit(main())

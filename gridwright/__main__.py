"""Allow ``python -m gridwright``."""

import sys

from .cli import main


sys.exit(main())

"""Allow ``python -m cxxfront``."""

import sys

from cxxfront.main import main

sys.exit(main())

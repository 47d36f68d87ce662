"""Allow running ftpclient with python -m ftpclient."""

import sys

from .main import main

sys.exit(main())

"""Allow ``python -m walletbridge``."""

import sys

from walletbridge.main import main

sys.exit(main())

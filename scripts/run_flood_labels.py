#!/usr/bin/env python3
"""``sarflood`` flood-labeling runner.

Usage:
    python scripts/run_flood_labels.py scripts/user_config.py
    python scripts/run_flood_labels.py scripts/user_config.py --end-date 2021-12-20
    python scripts/run_flood_labels.py scripts/user_config.py --mode tolerant -v

Note: User config in scripts/user_config.py, expert defaults in
src/sarflood/schemas/param.py. Install the package (``pip install -e .``)
or use the ``sarflood`` console script directly.
"""

import sys

from sarflood.cli.run_flood import main


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
mqgo: generate API test plans from a swagger file, then run them.

Usage:
    python3 mqgo.py generate -d meqa_data -s meqa_data/swagger.yaml
    python3 mqgo.py run -d meqa_data -p meqa_data/object.yaml
"""

import sys

from meqa.cli import main

if __name__ == "__main__":
    sys.exit(main())

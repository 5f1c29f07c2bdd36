"""
ordercheck Entry Point

Run one verification against an ordering service:
    python -m ordercheck --config harness-config.json

Property of Uncompromising Sensors LLC.
"""

import sys
from .main import main

if __name__ == '__main__':
    sys.exit(main())

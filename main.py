"""
immich-captioner - AI Descriptions for Immich
=============================================

Main entry point when running from a source checkout:

    python main.py                 # describe everything, then exit
    python main.py --watch         # keep polling for new uploads
    python main.py --benchmark     # compare models on the 5 newest images

Settings come from flags, environment variables or a .env file; run with
--help for the full list.
"""

import os
import sys

# ============================================================================
# PATH SETUP
# ============================================================================
# Ensure the project root is on the module search path so the
# 'immich_captioner' package imports without being installed.
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

from immich_captioner.app import main

# ============================================================================
# APPLICATION ENTRY POINT
# ============================================================================
if __name__ == "__main__":
    sys.exit(main())

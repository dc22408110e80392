#!/usr/env/python3
"""
This package exposes:
(1) run: a command to run the fuoco workflow
(2) VERSION: the version of the fuoco package
"""

import sys
from .fuoco_main import main

VERSION = "0.1.0"

def run():
    """Calls the fuoco main function"""

    sys.exit(main())

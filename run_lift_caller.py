#!/usr/bin/env python3
"""
Lift Caller Runner.

Convenience script to run the lift caller from a checkout.

Usage:
    python run_lift_caller.py --transcript "from ground to level 25"

Or run as module:
    python -m lift_caller
"""

import sys
import os

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'python'))

if __name__ == "__main__":
    from lift_caller.__main__ import run
    run()

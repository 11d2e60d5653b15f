#!/usr/bin/env python3
"""
Packaged Build Publisher (Wrapper)
Wraps lib.ue_packaging.cli for easy execution.
"""

import sys
from pathlib import Path

# Add lib directory to Python path
lib_path = Path(__file__).parent.parent / "lib"
sys.path.insert(0, str(lib_path))

from ue_packaging.cli import main_publish

if __name__ == "__main__":
    main_publish()

#!/usr/bin/env python
"""
CLI wrapper for cve.json dictionary validation and generation.
"""

import sys
from pathlib import Path

# Add src to path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir / "src"))

if __name__ == "__main__":
    from cvedict.pipeline.cli import main

    sys.exit(main())

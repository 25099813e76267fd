#!/usr/bin/env python3
"""
Refresh the course snapshot consumed by the catalog view.

Meant for a scheduled job; exits non-zero only when the first page
cannot be fetched.

Usage:
    python scripts/fetch_courses.py [--output public/courses.json] [fetch options]
"""

from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from coursecatalog.app import main


if __name__ == "__main__":
    main(["fetch", *sys.argv[1:]])

"""Viewer entry point: run from a source checkout without installing."""
import sys
from pathlib import Path

# Ensure flipbook is importable
root = Path(__file__).parent.resolve()
sys.path.insert(0, str(root))

from flipbook.ui.app import main

if __name__ == "__main__":
    sys.exit(main())

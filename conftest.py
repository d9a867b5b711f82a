"""Pytest configuration.

Why:
    Ensures the src layout is importable during test collection without
    requiring an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure src is in path for imports - must happen at import time
project_root = Path(__file__).parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from tests.doc_helpers import DocProject


@pytest.fixture
def project(tmp_path: Path) -> DocProject:
    return DocProject(tmp_path)

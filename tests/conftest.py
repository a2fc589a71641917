import os as _os
import sys

import pytest

# Ensure project root is importable (so `import main` / `import seqredeploy` work reliably across environments)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fakes import FakeClock  # noqa: E402
from seqredeploy import journal  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def clean_journal():
    journal.clear()
    yield
    journal.clear()

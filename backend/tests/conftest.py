import shutil
import uuid
from pathlib import Path

import pytest


@pytest.fixture
def home_tmp_path():
    """tmp_path equivalent under ~/ for tests that go through validate_output_path.

    macOS tmp dirs resolve under /private/var, which export refuses.
    """
    base = Path.home() / ".cache" / "duotone" / "test-tmp"
    base.mkdir(parents=True, exist_ok=True)
    d = base / f"test_{uuid.uuid4().hex[:8]}"
    d.mkdir()
    yield d
    shutil.rmtree(d, ignore_errors=True)

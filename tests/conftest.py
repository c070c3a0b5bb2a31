import os
import stat
import pytest
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


def write_executable(directory: Path, name: str, body: str = "#!/bin/sh\nexit 0\n") -> Path:
    """Create an executable script named `name` inside `directory`."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def home_dir(tmp_path):
    """
    Returns a temporary directory to act as the user's home for tests.
    Tool configs and the .vibe-usage directory are created beneath it.
    """
    home = tmp_path / "home"
    home.mkdir()
    return home


posix_only = pytest.mark.skipif(os.name != "posix", reason="requires POSIX shell scripts")

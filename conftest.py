"""Pytest configuration: point settings at a temp dir before any filedex imports."""

import os
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

# Set before filedex.config is used so nothing touches ~/.filedex
_tmp = tempfile.mkdtemp(prefix="filedex_test_")
os.environ.setdefault("FILEDEX_CONFIG_DIR", os.path.join(_tmp, "config"))
os.environ.setdefault("FILEDEX_HOSTNAME", "testhost")


@pytest_asyncio.fixture
async def catalog(tmp_path: Path):
    """Fresh catalog in tmp_path, disposed after the test."""
    from filedex.db.session import open_catalog

    cat = await open_catalog(tmp_path / "catalog")
    yield cat
    await cat.dispose()


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """a.txt and b.txt share content, c.txt differs."""
    root = tmp_path / "tree"
    root.mkdir()
    (root / "a.txt").write_text("hello")
    (root / "b.txt").write_text("hello")
    (root / "c.txt").write_text("world")
    return root

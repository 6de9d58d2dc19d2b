"""Tests for file writers and raw URL publishing."""

import pytest

from layergen.publish import Publisher
from layergen.writer import FileSystemWriter, MemoryWriter


class TestFileSystemWriter:
    """Tests for writing below a root directory."""

    def test_creates_parent_directories(self, tmp_path):
        writer = FileSystemWriter(tmp_path)
        writer.write("app/domain/entities/cart.py", "class Cart: ...\n")
        assert (tmp_path / "app/domain/entities/cart.py").read_text(encoding="utf-8") == "class Cart: ...\n"

    def test_overwrites(self, tmp_path):
        writer = FileSystemWriter(tmp_path)
        writer.write("conftest.py", "a\n")
        writer.write("conftest.py", "b\n")
        assert (tmp_path / "conftest.py").read_text(encoding="utf-8") == "b\n"

    @pytest.mark.parametrize("path", ["../escape.py", "app/../../escape.py"])
    def test_refuses_paths_outside_root(self, tmp_path, path):
        writer = FileSystemWriter(tmp_path / "out")
        with pytest.raises(PermissionError, match="outside"):
            writer.write(path, "x\n")
        assert not (tmp_path / "escape.py").exists()


class TestMemoryWriter:
    """Tests for buffering files."""

    def test_buffers(self):
        writer = MemoryWriter()
        writer.write("app/__init__.py", "")
        assert writer.files == {"app/__init__.py": ""}


class TestPublisher:
    """Tests for raw URL templating."""

    def test_disabled_without_base(self):
        publisher = Publisher()
        assert publisher.url_for("app/x.py") is None

    def test_trailing_slash_is_dropped(self):
        publisher = Publisher("https://raw.example.com/shop/main/")
        assert publisher.url_for("app/x.py") == "https://raw.example.com/shop/main/app/x.py"

    def test_missing_path(self):
        assert Publisher("https://raw.example.com").url_for(None) is None

"""Tests for engine.export: output naming and saving."""

import pytest

from engine.codec import JPEG, PNG
from engine.export import (
    Download,
    extension_for,
    file_base,
    output_file_name,
    sanitize_file_name,
    save_download,
)
from errors import ValidationError


@pytest.mark.smoke
class TestNaming:
    def test_punctuation_and_spaces_collapse(self):
        assert output_file_name("My Photo!! (2024).png", PNG) == "my-photo-2024-duotone.png"

    def test_jpeg_extension(self):
        assert output_file_name("holiday.JPEG", JPEG) == "holiday-duotone.jpg"
        assert extension_for(JPEG) == "jpg"
        assert extension_for(PNG) == "png"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            extension_for("image/gif")

    def test_file_base_strips_only_image_extensions(self):
        assert file_base("a.PNG") == "a"
        assert file_base("b.jpg") == "b"
        assert file_base("c.jpeg") == "c"
        assert file_base("archive.tar.gz") == "archive.tar.gz"
        assert file_base("") == "image"
        assert file_base(None) == "image"

    def test_runs_collapse_and_edges_trim(self):
        assert sanitize_file_name("__Hello   World__", "png") == "__hello-world__-duotone.png"
        assert sanitize_file_name("--a..b--", "png") == "a-b-duotone.png"

    def test_empty_after_sanitize_falls_back(self):
        assert sanitize_file_name("!!!", "png") == "image-duotone.png"
        assert sanitize_file_name("", "jpg") == "image-duotone.jpg"
        assert output_file_name("日本.png", PNG) == "image-duotone.png"


class TestSave:
    def test_writes_bytes(self, home_tmp_path):
        target = save_download(Download("out-duotone.png", PNG, b"abc"), home_tmp_path)
        assert target == home_tmp_path.resolve() / "out-duotone.png"
        assert target.read_bytes() == b"abc"

    def test_missing_directory(self, home_tmp_path):
        with pytest.raises(ValidationError, match="does not exist"):
            save_download(Download("x-duotone.png", PNG, b"abc"), home_tmp_path / "nope")

    def test_system_directory_refused(self):
        with pytest.raises(ValidationError, match="system directory"):
            save_download(Download("x-duotone.png", PNG, b"abc"), "/usr/lib")

"""Unit tests for CLI interface."""

import pytest
from PIL import Image

from flipbook.cli.main import main, parse_page_ranges
from flipbook.config.profile_manager import reset_profile


@pytest.fixture(autouse=True)
def _reset_profile():
    yield
    reset_profile()


class TestParsePageRanges:
    """Test page selection parsing."""

    def test_all_pages_by_default(self):
        assert parse_page_ranges(None, 3) == [1, 2, 3]
        assert parse_page_ranges("  ", 2) == [1, 2]

    def test_ranges_and_duplicates(self):
        assert parse_page_ranges("4, 1-2,2", 5) == [1, 2, 4]

    @pytest.mark.parametrize("spec", ["0", "6", "3-2", "2-9", "x", ","])
    def test_invalid(self, spec):
        with pytest.raises(ValueError):
            parse_page_ranges(spec, 5)


def test_info_prints_summary(pdf_path, capsys):
    assert main(["--input", str(pdf_path), "--info"]) == 0

    out = capsys.readouterr().out
    assert "Pages: 5" in out
    assert "Title: Test Magazine" in out
    assert "Page 1: 595 x 842 pt" in out


def test_output_renders_selected_pages(pdf_path, tmp_path, capsys):
    output = tmp_path / "png"

    assert main(["--input", str(pdf_path), "--output", str(output), "--pages", "2-3", "--width", "200"]) == 0

    files = sorted(p.name for p in output.iterdir())
    assert files == ["five_pages_p002.png", "five_pages_p003.png"]
    with Image.open(output / files[0]) as image:
        # about width * default quality multiplier
        assert 395 <= image.width <= 401
    assert "2 page(s) written" in capsys.readouterr().out


def test_missing_input_file(tmp_path, capsys):
    assert main(["--input", str(tmp_path / "nope.pdf")]) == 1
    assert "Error:" in capsys.readouterr().err


def test_bad_page_selection(pdf_path, tmp_path):
    assert main(["--input", str(pdf_path), "--output", str(tmp_path / "out"), "--pages", "9"]) == 1


def test_unknown_profile(pdf_path):
    assert main(["--input", str(pdf_path), "--profile", "missing"]) == 2


def test_input_required():
    with pytest.raises(SystemExit):
        main([])


def test_quality_out_of_range(pdf_path):
    with pytest.raises(SystemExit):
        main(["--input", str(pdf_path), "--quality", "5"])

"""Unit tests for the stylesheet template."""

from flipbook.ui.theme import colors, load_stylesheet


def test_tokens_substituted():
    qss = load_stylesheet()

    assert qss
    assert "$" not in qss
    assert colors["primary"] in qss


def test_toolbar_styles_present():
    qss = load_stylesheet()
    assert "#flipbook_toolbar" in qss
    assert "#cover_card" in qss

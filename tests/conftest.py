import unicodedata

import pytest

from dailynews.content import ContentResolver
from dailynews.server import _DEFAULTS, create_app

NEWSLETTER = "뉴스레터"
SUMMARY = "요약.md"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def nfd(name: str) -> str:
    return unicodedata.normalize("NFD", name)


@pytest.fixture
def content_root(tmp_path):
    """A content tree laid out the way the ingestion job leaves it.

    The Korean folder and file are written in NFD, as a macOS checkout
    would store them.
    """
    news = tmp_path / "News"
    news.mkdir()
    (news / "2024-01-01-10:00:00.md").write_text("# January\n", encoding="utf-8")
    (news / "2024-03-05-09:00:00.md").write_text("# March\n\n![x](pic.png)\n", encoding="utf-8")
    (news / "pic.png").write_bytes(PNG_BYTES)
    (news / "readme.txt").write_text("not markdown", encoding="utf-8")

    notes = tmp_path / "Notes"
    notes.mkdir()
    (notes / "notes.md").write_text("plain notes", encoding="utf-8")

    (tmp_path / "Empty").mkdir()

    letters = tmp_path / nfd(NEWSLETTER)
    letters.mkdir()
    (letters / "2024-05-01-08:00:00.md").write_text("# May\n", encoding="utf-8")
    (letters / nfd(SUMMARY)).write_text("요약 본문", encoding="utf-8")

    for hidden in ("node_modules", ".git", ".agent", nfd("오디오")):
        (tmp_path / hidden).mkdir()
        (tmp_path / hidden / "2030-01-01-00:00:00.md").write_text("hidden", encoding="utf-8")

    (tmp_path / "top-level.md").write_text("not a folder", encoding="utf-8")
    return tmp_path


@pytest.fixture
def resolver(content_root):
    return ContentResolver(content_root, _DEFAULTS["excluded_folders"])


@pytest.fixture
def app(content_root):
    app = create_app(content_root)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()

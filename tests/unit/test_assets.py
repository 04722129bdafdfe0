"""
Unit tests for resolving and inlining book images and stylesheets.
"""

import pytest

from epub2zh.core.extraction.assets import AssetResolver, find_image_files


@pytest.fixture
def book_root(tmp_path):
    root = tmp_path / "book"
    (root / "Text").mkdir(parents=True)
    (root / "Images").mkdir()
    (root / "Images" / "photo.jpg").write_bytes(b"jpeg-bytes")
    (root / "Images" / "diagram.svg").write_text("<svg/>", encoding="utf-8")
    (tmp_path / "secret.png").write_bytes(b"outside")
    return root


class TestResolve:
    """Test reference lookup."""

    def test_relative_reference(self, book_root):
        resolver = AssetResolver(book_root)
        assert resolver.resolve("../Images/photo.jpg", book_root / "Text") == (book_root / "Images" / "photo.jpg").resolve()

    def test_fragment_query_and_escapes(self, book_root):
        (book_root / "Images" / "two words.jpg").write_bytes(b"x")
        resolver = AssetResolver(book_root)
        resolved = resolver.resolve("../Images/two%20words.jpg?v=2#top", book_root / "Text")
        assert resolved.name == "two words.jpg"

    def test_falls_back_to_file_name(self, book_root):
        resolver = AssetResolver(book_root)
        assert resolver.resolve("img/PHOTO.JPG", book_root / "Text").name == "photo.jpg"

    def test_external_references_are_skipped(self, book_root):
        resolver = AssetResolver(book_root)
        for reference in ("http://example.com/photo.jpg", "data:image/png;base64,AA", "//cdn/photo.jpg", ""):
            assert resolver.resolve(reference, book_root / "Text") is None

    def test_files_outside_the_book_are_not_read(self, book_root):
        resolver = AssetResolver(book_root, image_files=[])
        assert resolver.resolve("../../secret.png", book_root / "Text") is None

    def test_known_images_limit_the_name_fallback(self, book_root):
        resolver = AssetResolver(book_root, image_files=[book_root / "Images" / "diagram.svg"])
        assert resolver.resolve("photo.jpg", book_root / "Text") is None
        assert resolver.resolve("diagram.svg", book_root / "Text").name == "diagram.svg"

    def test_find_image_files(self, book_root):
        assert [p.name for p in find_image_files(book_root)] == ["diagram.svg", "photo.jpg"]


class TestInlining:
    """Test data URI generation."""

    @pytest.mark.asyncio
    async def test_image_uri(self, book_root):
        uri = await AssetResolver(book_root).image_uri("../Images/photo.jpg", book_root / "Text")
        assert uri == "data:image/jpeg;base64,anBlZy1ieXRlcw=="

    @pytest.mark.asyncio
    async def test_missing_image(self, book_root):
        assert await AssetResolver(book_root).image_uri("../Images/none.png", book_root / "Text") is None

    @pytest.mark.asyncio
    async def test_stylesheet(self, book_root):
        css_path = book_root / "Text" / "style.css"
        css_path.write_text(
            "a { background: url('../Images/photo.jpg'); }\n"
            "b { background: url(../Images/photo.jpg); }\n"
            "c { background: url(missing.gif); }\n"
            "d::after { content: '</style>'; }\n",
            encoding="utf-8"
        )

        css = await AssetResolver(book_root).inline_stylesheet(css_path)

        assert css.count("url('data:image/jpeg;base64,anBlZy1ieXRlcw==')") == 2
        assert "url(missing.gif)" in css
        assert "</style>" not in css

    @pytest.mark.asyncio
    async def test_unreadable_stylesheet(self, book_root):
        assert await AssetResolver(book_root).inline_stylesheet(book_root / "absent.css") is None

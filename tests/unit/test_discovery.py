"""
Unit tests for package discovery and the heuristic content passes.
"""

from epub2zh.core.extraction.discovery import (
    DISCOVERY_PASSES,
    common_directory_scan,
    keyword_scan,
    locate_opf,
    natural_sort_key,
    parse_package,
    recursive_extension_scan,
    xml_href_scan,
)
from tests.fixtures import create_sample_epubs


def write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def html(title):
    return create_sample_epubs.create_plain_html(title, f"Text of {title}.")


class TestNaturalSortKey:
    """Test digit-aware ordering."""

    def test_numbers_compare_numerically(self):
        names = ["ch10.html", "ch2.html", "ch1.html"]
        assert sorted(names, key=natural_sort_key) == ["ch1.html", "ch2.html", "ch10.html"]

    def test_case_insensitive_text(self):
        assert sorted(["b.html", "A.html"], key=natural_sort_key) == ["A.html", "b.html"]


class TestLocateOpf:
    """Test package document lookup order."""

    def test_well_known_path(self, tmp_path):
        opf = write(tmp_path / "OEBPS" / "content.opf", "<package/>")
        assert locate_opf(tmp_path) == opf

    def test_container_rootfile(self, tmp_path):
        write(tmp_path / "META-INF" / "container.xml", create_sample_epubs.create_container_xml("book/package.opf"))
        opf = write(tmp_path / "book" / "package.opf", "<package/>")
        assert locate_opf(tmp_path) == opf

    def test_any_opf_file(self, tmp_path):
        opf = write(tmp_path / "deep" / "dir" / "other.opf", "<package/>")
        assert locate_opf(tmp_path) == opf

    def test_missing(self, tmp_path):
        write(tmp_path / "ch1.html", html("one"))
        assert locate_opf(tmp_path) is None


class TestParsePackage:
    """Test manifest, spine and metadata parsing."""

    def test_spine_order_and_metadata(self, tmp_path):
        chapters = ["One.", "Two.", "Three."]
        opf = write(tmp_path / "content.opf",
                    create_sample_epubs.create_opf("My Book", "Jane Roe", chapters, spine_order=[2, 0, 1]))
        for i, content in enumerate(chapters):
            write(tmp_path / create_sample_epubs.chapter_filename(i),
                  create_sample_epubs.create_chapter_xhtml(f"Chapter {i + 1}", content))
        write(tmp_path / "toc.ncx", create_sample_epubs.create_ncx("My Book", chapters))
        write(tmp_path / "stylesheet.css", create_sample_epubs.create_stylesheet())

        package = parse_package(opf)

        assert [p.name for p in package.html_files] == ["chapter_003.xhtml", "chapter_001.xhtml", "chapter_002.xhtml"]
        assert package.metadata["title"] == "My Book"
        assert package.metadata["author"] == "Jane Roe"
        assert package.metadata["language"] == "en"
        assert package.toc_path.name == "toc.ncx"
        assert [p.name for p in package.css_files] == ["stylesheet.css"]

    def test_manifest_items_missing_from_archive_are_skipped(self, tmp_path):
        opf = write(tmp_path / "content.opf", create_sample_epubs.create_opf("Book", "A", ["x", "y"]))
        write(tmp_path / "chapter_002.xhtml", create_sample_epubs.create_chapter_xhtml("Two", "y"))

        package = parse_package(opf)

        assert [p.name for p in package.html_files] == ["chapter_002.xhtml"]

    def test_url_encoded_href(self, tmp_path):
        opf = write(tmp_path / "content.opf", '''<?xml version="1.0"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0">
  <manifest><item id="c1" href="my%20chapter.xhtml" media-type="application/xhtml+xml"/></manifest>
  <spine><itemref idref="c1"/></spine>
</package>''')
        write(tmp_path / "my chapter.xhtml", html("spaced"))

        assert [p.name for p in parse_package(opf).html_files] == ["my chapter.xhtml"]

    def test_unspined_documents_follow_spine(self, tmp_path):
        opf = write(tmp_path / "content.opf", '''<?xml version="1.0"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0">
  <manifest>
    <item id="a" href="a.html" media-type="text/html"/>
    <item id="b" href="b.html" media-type="text/html"/>
  </manifest>
  <spine><itemref idref="b"/></spine>
</package>''')
        write(tmp_path / "a.html", html("a"))
        write(tmp_path / "b.html", html("b"))

        assert [p.name for p in parse_package(opf).html_files] == ["b.html", "a.html"]

    def test_unparseable_file(self, tmp_path):
        opf = write(tmp_path / "content.opf", "")
        assert parse_package(opf) is None


class TestDiscoveryPasses:
    """Test the heuristic passes."""

    def test_pass_order(self):
        assert [name for name, _ in DISCOVERY_PASSES] == [
            "common_directory_scan",
            "recursive_extension_scan",
            "keyword_scan",
            "xml_href_scan",
        ]

    def test_common_directory_scan_sorts_by_chapter_number(self, tmp_path):
        for name in ("ch10.html", "ch2.html", "ch1.html"):
            write(tmp_path / "OEBPS" / "text" / name, html(name))
        write(tmp_path / "stray.html", html("stray"))

        assert [p.name for p in common_directory_scan(tmp_path)] == ["ch1.html", "ch2.html", "ch10.html"]

    def test_common_directory_scan_without_known_dirs(self, tmp_path):
        write(tmp_path / "misc" / "a.html", html("a"))
        assert common_directory_scan(tmp_path) == []

    def test_recursive_extension_scan(self, tmp_path):
        write(tmp_path / "b" / "part10.xhtml", html("10"))
        write(tmp_path / "b" / "part9.htm", html("9"))
        write(tmp_path / "a.html", html("a"))
        write(tmp_path / "notes.txt", "not html")

        assert [p.name for p in recursive_extension_scan(tmp_path)] == ["a.html", "part9.htm", "part10.xhtml"]

    def test_keyword_scan(self, tmp_path):
        for name in ("chapter2.html", "001.xhtml", "cover.html", "section1.htm"):
            write(tmp_path / name, html(name))

        assert [p.name for p in keyword_scan(tmp_path)] == ["001.xhtml", "chapter2.html", "section1.htm"]

    def test_xml_href_scan(self, tmp_path):
        write(tmp_path / "index.xml", '<list><item href="pages/one.html"/><item href="missing.html"/></list>')
        write(tmp_path / "pages" / "one.html", html("one"))

        assert [p.name for p in xml_href_scan(tmp_path)] == ["one.html"]

# File: tests/test_augment.py
import pytest
from bs4 import BeautifulSoup

from site_mirror.rewriter.augment import (
    HEADING_CLASS,
    apply_title,
    augment_page,
    compose_title,
    ensure_sitemap_link,
    filter_meta,
    insert_heading,
)


def soup_of(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


@pytest.mark.parametrize(
    "original,suffix,expected",
    [
        ("Home", "Mirror", "Home-Mirror"),
        ("  Home ", None, "Home"),
        ("", "Mirror", "Mirror"),
        ("", None, ""),
    ],
)
def test_compose_title(original, suffix, expected):
    assert compose_title(original, suffix) == expected


def test_apply_title_creates_missing_title():
    soup = soup_of("<html><head></head><body></body></html>")
    assert apply_title(soup, "Mirror") == "Mirror"
    assert soup.head.title.string == "Mirror"


def test_heading_prefers_header_then_grid_column():
    soup = soup_of(
        "<body><div id='first'></div>"
        "<header><div class='row'><div class='col-md-6' id='col'></div></div></header></body>"
    )
    h1 = insert_heading(soup, "Title")
    assert h1["class"] == HEADING_CLASS
    assert h1.parent["id"] == "col"


def test_heading_falls_back_to_first_child_and_body():
    soup = soup_of("<body><nav id='n'><span>x</span></nav></body>")
    assert insert_heading(soup, "T").parent["id"] == "n"

    scripted = soup_of("<body><script>if (a < b && c) { go(); }</script><p id='p'>x</p></body>")
    assert insert_heading(scripted, "T").parent["id"] == "p"
    assert scripted.script.string == "if (a < b && c) { go(); }"

    only_script = soup_of("<body><noscript>x</noscript><script>run();</script></body>")
    assert insert_heading(only_script, "T").parent.name == "body"
    assert only_script.script.string == "run();"

    empty = soup_of("<body></body>")
    assert insert_heading(empty, "T").parent.name == "body"
    assert insert_heading(empty, "") is None


def test_filter_meta_keeps_allow_list_in_head_only():
    soup = soup_of(
        "<html><head>"
        "<meta name='keywords' content='a'>"
        "<meta name='Description' content='d'>"
        "<meta name='msapplication-TileColor' content='#fff'>"
        "<meta http-equiv='X-UA-Compatible' content='IE=edge'>"
        "<meta property='og:title' content='x'>"
        "</head><body><div itemscope><meta itemprop='name' content='n'></div></body></html>"
    )
    assert filter_meta(soup) == 2
    assert len(soup.head.find_all("meta")) == 3
    assert soup.body.find("meta") is not None


def test_sitemap_link_added_once():
    soup = soup_of("<html><body><p>x</p></body></html>")
    assert ensure_sitemap_link(soup) is True
    assert ensure_sitemap_link(soup) is False
    assert len(soup.find_all("a", href="/sitemap.xml")) == 1


def test_augment_page_without_suffix_keeps_original_title():
    soup = soup_of("<html><head><title>News</title></head><body><main></main></body></html>")
    augment_page(soup, None)
    assert soup.title.string == "News"
    assert soup.main.h1.string == "News"

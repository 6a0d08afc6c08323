"""Tests for newsdesk.services.parser."""

from newsdesk.services.parser import MAX_CONTENT_CHARS, extract_article_content

BODY = "<p>" + "Researchers released a model that writes code. " * 20 + "</p>"


def page(head="", body=BODY):
    return f"<html><head>{head}</head><body><article><h1>Big News</h1>{body}</article></body></html>"


def test_extracts_title_content_and_og_image():
    html = page('<title>Site title</title><meta property="og:image" content="/img/lead.jpg">')

    result = extract_article_content(html, "https://news.example/story")

    assert result.title == "Big News"
    assert result.success
    assert "Researchers released a model" in result.content
    assert result.image_url == "https://news.example/img/lead.jpg"


def test_twitter_image_fallback():
    html = page('<meta name="twitter:image" content="https://cdn.example/photo/1.png">')
    assert extract_article_content(html, "https://x").image_url == "https://cdn.example/photo/1.png"


def test_skips_icons_when_scanning_images():
    body = BODY + '<img src="/static/logo.png" alt="logo"><img src="/uploads/photo.jpg" alt="">'
    html = f"<html><body>{body}</body></html>"
    assert extract_article_content(html, "https://site.example/a").image_url == "https://site.example/uploads/photo.jpg"


def test_short_page_is_not_a_success():
    result = extract_article_content(page(body="<p>Too short.</p>"), "https://x")
    assert result.content == ""
    assert not result.success


def test_long_content_is_truncated():
    body = "<p>" + " ".join(f"Sentence number {i} is about policy." for i in range(1000)) + "</p>"
    result = extract_article_content(page(body=body), "https://x")
    assert len(result.content) == MAX_CONTENT_CHARS + 3
    assert result.content.endswith("...")


def test_title_falls_back_to_title_tag():
    html = f"<html><head><title> Only Title </title></head><body>{BODY}</body></html>"
    assert extract_article_content(html, "https://x").title == "Only Title"

from datetime import datetime, timezone

from newsradar.ingestion.text import (
    article_hash,
    parse_date,
    sanitize_text,
    strip_html,
    to_absolute_url,
    url_hash,
)


def test_sanitize_text_collapses_whitespace():
    assert sanitize_text("  Deprem \n\n  sonrası\tson durum  ") == "Deprem sonrası son durum"
    assert sanitize_text(None) == ""


def test_strip_html_removes_scripts_and_decodes_entities():
    raw = "<p>Merhaba&nbsp;<b>dünya</b></p><script>var x = 1;</script><style>p{}</style> &amp; sonrası"
    assert strip_html(raw) == "Merhaba dünya & sonrası"


def test_strip_html_keeps_literal_angle_brackets():
    assert strip_html("<p>Enflasyon 3 < 5 oldu ve faiz > 40 kaldı</p>") == "Enflasyon 3 < 5 oldu ve faiz > 40 kaldı"
    assert strip_html("a &lt;b&gt; c") == "a <b> c"


def test_to_absolute_url_examples():
    base = "https://example.com/news/list"
    assert to_absolute_url("/a", base) == "https://example.com/a"
    assert to_absolute_url("//cdn.x/y.jpg", base) == "https://cdn.x/y.jpg"
    assert to_absolute_url("https://other.org/z", base) == "https://other.org/z"
    assert to_absolute_url("detail/5", base) == "https://example.com/news/detail/5"
    assert to_absolute_url("", base) == ""


def test_article_hash_is_per_source():
    url = "https://example.com/a"
    assert article_hash(1, url) == article_hash(1, url)
    assert article_hash(1, url) != article_hash(2, url)
    assert len(url_hash(url)) == 64


def test_parse_date_iso():
    parsed = parse_date("2024-01-15T10:30:00+03:00")
    assert (parsed.year, parsed.month, parsed.day, parsed.hour) == (2024, 1, 15, 10)


def test_parse_date_turkish_month_names():
    parsed = parse_date("15 Ocak 2024")
    assert (parsed.year, parsed.month, parsed.day) == (2024, 1, 15)

    parsed = parse_date("3 Ağustos 2023, 14:05")
    assert (parsed.year, parsed.month, parsed.day) == (2023, 8, 3)


def test_parse_date_falls_back_to_now():
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert parse_date("dün akşam", now=now) == now
    assert parse_date(None, now=now) == now

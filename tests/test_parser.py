from datetime import datetime, timezone

import pytest

from bookgist.errors import ParseError
from bookgist.feed.parser import parse_feed, parse_timestamp, strip_html

UTC = timezone.utc


def test_goodreads_rss_needs_sanitizing(load_feed):
    feed = parse_feed(load_feed('goodreads_updates.xml'))
    assert feed.shape == 'rss/channel/item'
    assert feed.tier == 'sanitized'
    assert len(feed.entries) == 5
    first = feed.entries[0]
    assert first.title == "Jane Doe is currently reading 'Project Hail Mary'"
    assert first.description == 'Jane Doe is currently reading Project Hail Mary by Andy Weir'
    assert first.published == datetime(2024, 6, 10, 15, 0, tzinfo=UTC)
    assert feed.entries[2].title == "Jane Doe added 'Tom & Jerry's Guide'"


def test_atom_namespaced(load_feed):
    feed = parse_feed(load_feed('simple_atom.xml'))
    assert feed.shape == 'feed/entry'
    assert feed.tier == 'raw'
    assert [e.title for e in feed.entries] == [
        'Currently reading: The Left Hand of Darkness by Ursula K. Le Guin',
        'Finished: Project Hail Mary: A Novel by Andy Weir',
    ]
    # content outranks summary
    assert feed.entries[1].description == 'Loved it.'
    assert feed.entries[0].description == 'Started a classic.'
    assert feed.entries[1].published == datetime(2024, 6, 18, 10, 0, tzinfo=UTC)


def test_bare_channel():
    feed = parse_feed('<channel><item><title>One</title></item><item><title>Two</title></item></channel>')
    assert feed.shape == 'channel/item'
    assert [e.title for e in feed.entries] == ['One', 'Two']


def test_bare_entry_list():
    feed = parse_feed('<entries><entry><title>Only</title></entry></entries>')
    assert feed.shape == 'entry'
    assert feed.entries[0].title == 'Only'


def test_rdf_items():
    xml = (
        '<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#" xmlns="http://purl.org/rss/1.0/">'
        '<channel><title>c</title></channel><item><title>RDF item</title></item></rdf:RDF>'
    )
    feed = parse_feed(xml)
    assert feed.shape == 'RDF/item'
    assert feed.entries[0].title == 'RDF item'


def test_description_priority_prefers_description_over_encoded():
    xml = (
        '<rss xmlns:content="http://purl.org/rss/1.0/modules/content/"><channel><item>'
        '<title>t</title>'
        '<content:encoded><![CDATA[<p>encoded</p>]]></content:encoded>'
        '<description>plain description</description>'
        '</item></channel></rss>'
    )
    entry = parse_feed(xml).entries[0]
    assert entry.description == 'plain description'


def test_empty_description_falls_through():
    xml = (
        '<rss xmlns:content="http://purl.org/rss/1.0/modules/content/"><channel><item>'
        '<title>t</title><description></description>'
        '<content:encoded><![CDATA[<p>by <b>Frank Herbert</b></p>]]></content:encoded>'
        '</item></channel></rss>'
    )
    assert parse_feed(xml).entries[0].description == 'by Frank Herbert'


def test_provider_fields_kept():
    xml = (
        '<rss><channel><item><title>Dune</title>'
        '<author_name>Frank Herbert</author_name>'
        '<user_read_at>Sat, 06 Jan 2024 00:00:00 -0800</user_read_at>'
        '</item></channel></rss>'
    )
    entry = parse_feed(xml).entries[0]
    assert entry.fields['author_name'] == 'Frank Herbert'
    assert entry.timestamp('user_read_at', 'published') == datetime(2024, 1, 6, 8, 0, tzinfo=UTC)
    assert entry.published is None
    assert entry.timestamp('missing', 'published') is None


def test_stray_bracket_needs_repair():
    feed = parse_feed('<rss><channel><item><title>a < b</title></item></channel></rss>')
    assert feed.tier == 'repaired'
    assert feed.entries[0].title == 'a < b'


def test_bom_and_declared_encoding():
    xml = '\ufeff  <?xml version="1.0" encoding="ISO-8859-1"?><rss><channel><item><title>Café</title></item></channel></rss>'
    feed = parse_feed(xml)
    assert feed.tier == 'raw'
    assert feed.entries[0].title == 'Café'


@pytest.mark.parametrize('text', ['', '   ', 'not xml', '<rss><channel><item>'])
def test_unparseable_raises(text):
    with pytest.raises(ParseError):
        parse_feed(text)


def test_no_entries_raises():
    with pytest.raises(ParseError):
        parse_feed('<rss><channel><title>Nothing here</title></channel></rss>')


@pytest.mark.parametrize('value,expected', [
    ('Mon, 01 Jan 2024 10:00:00 GMT', datetime(2024, 1, 1, 10, 0, tzinfo=UTC)),
    ('Mon, 01 Jan 2024 10:00:00 PST', datetime(2024, 1, 1, 18, 0, tzinfo=UTC)),
    ('2024-01-01T10:00:00+02:00', datetime(2024, 1, 1, 8, 0, tzinfo=UTC)),
    ('2024-01-01', datetime(2024, 1, 1, tzinfo=UTC)),
    ('', None),
    (None, None),
    ('whenever', None),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


def test_strip_html():
    assert strip_html('<p>Hello&nbsp;<b>world</b></p>\n<script>x()</script>') == 'Hello world'

'''
Feed parser: sanitized XML text -> list of FeedEntry.

Tolerates RSS 2.0, bare channel, Atom, bare entry lists and RSS 1.0 (RDF).
Elements are matched by local name, so namespaces never get in the way.
'''

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from html import unescape
from xml.etree import ElementTree as ET

import structlog
from dateutil import parser as date_parser

from bookgist.errors import ParseError
from bookgist.feed.sanitize import repair_xml, sanitize_xml

# Abbreviations dateutil cannot resolve on its own
TZINFOS = {
    'EST': timezone(timedelta(hours=-5)),
    'EDT': timezone(timedelta(hours=-4)),
    'CST': timezone(timedelta(hours=-6)),
    'CDT': timezone(timedelta(hours=-5)),
    'MST': timezone(timedelta(hours=-7)),
    'MDT': timezone(timedelta(hours=-6)),
    'PST': timezone(timedelta(hours=-8)),
    'PDT': timezone(timedelta(hours=-7)),
    'GMT': timezone.utc,
    'UTC': timezone.utc,
    'BST': timezone(timedelta(hours=1)),
}

# Probe order matters: first shape yielding entries wins
SHAPES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ('rss/channel/item', ('rss', 'channel', 'item')),
    ('channel/item', ('channel', 'item')),
    ('feed/entry', ('feed', 'entry')),
    ('entry', ('entry',)),
    ('RDF/item', ('RDF', 'item')),
)

# Local names, highest priority first; the first non-empty one is the description
DESCRIPTION_FIELDS = ('contentSnippet', 'content', 'description', 'summary', 'encoded')
DATE_FIELDS = ('pubDate', 'published', 'updated', 'date')

_XML_DECL_ENCODING = re.compile(r'^(<\?xml[^>]*?)\s+encoding\s*=\s*["\'][^"\']*["\']')


@dataclass
class FeedEntry:
    '''One item/entry of a feed, reduced to plain text.'''

    title: str
    description: str = ''
    published: datetime | None = None
    fields: dict[str, str] = field(default_factory=dict)  # other leaf children, by local name

    def timestamp(self, *names: str) -> datetime | None:
        '''First parseable timestamp among the named fields ('published' means the entry date).'''
        for name in names:
            value = self.published if name == 'published' else parse_timestamp(self.fields.get(name))
            if value is not None:
                return value
        return None


@dataclass
class ParsedFeed:
    entries: list[FeedEntry]
    shape: str
    tier: str  # 'raw' | 'sanitized' | 'repaired'


def parse_timestamp(value: str | None) -> datetime | None:
    '''Parse an RFC 822 or ISO 8601 timestamp to an aware UTC datetime. None if unparseable.'''
    if not value or not value.strip():
        return None
    try:
        dt = date_parser.parse(value.strip(), tzinfos=TZINFOS)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def strip_html(s: str) -> str:
    '''HTML fragment -> single-line plain text.'''
    s = unescape(s or '')
    s = re.sub(r'(?is)<script.*?</script>|<style.*?</style>|<!--.*?-->', ' ', s)
    s = re.sub(r'<[^>]+>', ' ', s)
    return re.sub(r'\s+', ' ', s).strip()


def _local(tag) -> str:
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]


def _text(el: ET.Element) -> str:
    return ''.join(el.itertext())


def _follow(start: list[ET.Element], path: tuple[str, ...]) -> list[ET.Element]:
    nodes = [n for n in start if _local(n.tag) == path[0]]
    for name in path[1:]:
        nodes = [c for n in nodes for c in n if _local(c.tag) == name]
    return nodes


def probe_entries(root: ET.Element) -> tuple[str | None, list[ET.Element]]:
    '''Find entry elements by trying each known shape at the root, then at its children.'''
    for shape, path in SHAPES:
        found = _follow([root], path) or _follow(list(root), path)
        if found:
            return shape, found
    return None, []


def entry_from_element(el: ET.Element) -> FeedEntry:
    children: dict[str, ET.Element] = {}
    leaf_fields: dict[str, str] = {}
    for child in el:
        name = _local(child.tag)
        children.setdefault(name, child)
        if len(child) == 0 and name not in leaf_fields:
            leaf_fields[name] = (child.text or '').strip()

    title_el = children.get('title')
    title = ' '.join(_text(title_el).split()) if title_el is not None else ''

    description = ''
    for name in DESCRIPTION_FIELDS:
        candidate = children.get(name)
        if candidate is None:
            continue
        description = strip_html(_text(candidate))
        if description:
            break

    published = None
    for name in DATE_FIELDS:
        if name in children:
            published = parse_timestamp(_text(children[name]))
            if published is not None:
                break

    return FeedEntry(title=title, description=description, published=published, fields=leaf_fields)


def _strict(text: str) -> str:
    return text


def _aggressive(text: str) -> str:
    return repair_xml(sanitize_xml(text))


PARSE_TIERS = (
    ('raw', _strict),
    ('sanitized', sanitize_xml),
    ('repaired', _aggressive),
)


def parse_feed(text: str) -> ParsedFeed:
    '''
    Parse feed text into entries, trying each sanitization tier in turn.

    Raises ParseError if no tier yields well-formed XML, or the document
    has no entries in any known shape.
    '''
    log = structlog.get_logger()
    # str input is already decoded; a declared encoding only confuses expat
    text = _XML_DECL_ENCODING.sub(r'\1', (text or '').lstrip('\ufeff').lstrip())
    if not text:
        raise ParseError('Feed is empty')

    previous = None
    last_error: Exception | None = None
    for tier, prepare in PARSE_TIERS:
        candidate = prepare(text)
        if candidate == previous:
            log.debug('parse tier skipped, text unchanged', tier=tier)
            continue
        previous = candidate
        try:
            root = ET.fromstring(candidate)
        except ET.ParseError as e:
            log.warning('feed not well-formed', tier=tier, error=str(e))
            last_error = e
            continue
        shape, nodes = probe_entries(root)
        if not nodes:
            raise ParseError(f'No feed entries found under <{_local(root.tag)}>')
        entries = [entry_from_element(n) for n in nodes]
        log.info('feed parsed', tier=tier, shape=shape, entries=len(entries))
        return ParsedFeed(entries=entries, shape=shape, tier=tier)

    raise ParseError(f'Feed is not well-formed XML: {last_error}') from last_error

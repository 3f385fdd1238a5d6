'''
Fact extraction: find the currently-reading book and recently finished books
among feed entries.

Each provider convention is an ExtractionRule (markers + title pattern +
fallbacks). Every rule runs over every entry; results are merged by recency.
Feeds are assumed newest-first.
'''

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from dateutil.relativedelta import relativedelta

from bookgist.feed.parser import FeedEntry

CURRENT = 'current'
FINISHED = 'finished'

_OPEN_QUOTE = '[\'"“‘]?'
_CLOSE_QUOTE = '[\'"”’]?'
_BY_AUTHOR = r'(?:\s+by\s+(?P<author>.+?))?'

# A title with no "by" in it is only trusted when the named "marker" group
# matched: the title itself names the book.
CURRENTLY_READING_PATTERN = re.compile(
    rf'^(?P<marker>.*?\bcurrently\s+reading\b[:\s]*)?{_OPEN_QUOTE}(?P<title>.+?){_CLOSE_QUOTE}{_BY_AUTHOR}\s*$',
    re.IGNORECASE,
)
FINISHED_PATTERN = re.compile(
    r'\b(?:finished|read)\b(?:(?P<marker>\s*:\s*|\s+(?=[\'"“‘]))|\s+)'
    rf'{_OPEN_QUOTE}(?P<title>.+?){_CLOSE_QUOTE}{_BY_AUTHOR}\s*$',
    re.IGNORECASE,
)
GOODREADS_ADDED_PATTERN = re.compile(
    rf'(?P<marker>\badded\s+){_OPEN_QUOTE}(?P<title>.+?){_CLOSE_QUOTE}{_BY_AUTHOR}'
    r'(?:\s+to\s+(?:their|his|her|my)\b.*)?\s*$',
    re.IGNORECASE,
)

# Goodreads series marker, e.g. "Dune (Dune, #1)"
_SERIES_SUFFIX = re.compile(r'\s*\([^()]*#\s*\d+(?:\.\d+)?\)\s*$')
_BY = re.compile(r'\bby\s+', re.IGNORECASE)
_NAME_PARTICLES = {'de', 'del', 'der', 'di', 'du', 'la', 'le', 'van', 'von'}
_QUOTES = '\'"“”‘’'
_INITIALS = re.compile(r'(?:[A-Z]\.)+')
_TRAILING_PAREN = re.compile(r'\s*\([^()]*\)?\s*$')


@dataclass(frozen=True)
class BookFact:
    '''
    A complete book fact: both title and author are non-empty.
    timestamp is when reading started (currently reading) or finished.
    '''

    title: str
    author: str
    timestamp: datetime | None = None
    rule: str = ''


@dataclass
class Extraction:
    current: BookFact | None = None
    finished: list[BookFact] = field(default_factory=list)  # newest first


def normalize_title(raw: str) -> str:
    '''Drop surrounding quotes, a series marker and any subtitle.'''
    title = raw.strip().strip(_QUOTES).strip()
    title = _SERIES_SUFFIX.sub('', title)
    return title.split(':', 1)[0].strip().strip(_QUOTES).strip()


def _clean_author(raw: str) -> str:
    author = raw.strip().strip(_QUOTES).strip()
    author = _TRAILING_PAREN.sub('', author)
    author = author.rstrip(',;:!?)').strip()
    if author.endswith('.'):
        last = author.split()[-1]
        if len(last) > 2 and not _INITIALS.fullmatch(last):
            author = author[:-1]
    return author.strip()


def author_from_text(text: str) -> str:
    '''
    Find "by Capitalised Name" in free text. Name words run until the first
    lowercase word that is not a surname particle.
    '''
    for m in _BY.finditer(text or ''):
        words: list[str] = []
        for word in text[m.end():].split():
            bare = word.strip(_QUOTES)
            if bare[:1].isupper():
                words.append(bare)
                # A word ending a clause closes the name
                if bare[-1:] in ',;:!?':
                    break
            elif words and bare.lower() in _NAME_PARTICLES:
                words.append(bare)
            else:
                break
        while words and words[-1].lower() in _NAME_PARTICLES:
            words.pop()
        if words:
            return _clean_author(' '.join(words))
    return ''


@dataclass(frozen=True)
class ExtractionRule:
    '''
    Declarative rule. An entry triggers the rule when every non-empty marker
    group is satisfied (all markers compared in lowercase):
    - title_any: title contains one of them
    - text_any: title or description contains one of them
    - description_all: description contains all of them
    - title_none: title contains none of them
    '''

    name: str
    kind: str  # CURRENT | FINISHED
    pattern: re.Pattern
    title_any: tuple[str, ...] = ()
    text_any: tuple[str, ...] = ()
    description_all: tuple[str, ...] = ()
    title_none: tuple[str, ...] = ()
    author_fields: tuple[str, ...] = ('author_name',)
    date_fields: tuple[str, ...] = ('published',)

    def triggered(self, title: str, description: str) -> bool:
        if self.title_any and not any(m in title for m in self.title_any):
            return False
        if self.text_any and not any(m in title or m in description for m in self.text_any):
            return False
        if self.description_all and not all(m in description for m in self.description_all):
            return False
        return not any(m in title for m in self.title_none)

    def apply(self, entry: FeedEntry) -> BookFact | None:
        '''
        Extract a complete fact from the entry title, or None. A title without
        "by" counts only when the pattern's marker group matched.
        '''
        m = self.pattern.search(entry.title)
        if not m:
            return None
        if not m.group('author') and not m.groupdict().get('marker'):
            return None
        title = normalize_title(m.group('title') or '')
        author = _clean_author(m.group('author') or '')
        if not author:
            for name in self.author_fields:
                author = _clean_author(entry.fields.get(name, ''))
                if author:
                    break
        if not author:
            author = author_from_text(entry.description)
        if not title or not author:
            return None
        return BookFact(title=title, author=author, timestamp=entry.timestamp(*self.date_fields), rule=self.name)


_WANTS_TO_READ = ('wants to read', 'want to read', 'to-read')

DEFAULT_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        name='currently-reading',
        kind=CURRENT,
        pattern=CURRENTLY_READING_PATTERN,
        text_any=('currently reading',),
        date_fields=('user_date_added', 'published'),
    ),
    ExtractionRule(
        name='finished-simple',
        kind=FINISHED,
        pattern=FINISHED_PATTERN,
        title_any=('finished', 'read'),
        title_none=('currently reading', 'shelf') + _WANTS_TO_READ,
        date_fields=('user_read_at', 'published'),
    ),
    ExtractionRule(
        name='goodreads-added',
        kind=FINISHED,
        pattern=GOODREADS_ADDED_PATTERN,
        title_any=('added',),
        description_all=('stars',),
        title_none=_WANTS_TO_READ,
        date_fields=('user_read_at', 'published'),
    ),
)


def _newer(candidate: BookFact, kept: BookFact) -> bool:
    '''True if candidate carries a strictly newer timestamp than kept.'''
    if candidate.timestamp is None:
        return False
    return kept.timestamp is None or candidate.timestamp > kept.timestamp


def extract_facts(
    entries: list[FeedEntry],
    rules: tuple[ExtractionRule, ...] = DEFAULT_RULES,
    *,
    now: datetime | None = None,
    recent_months: int = 6,
    recent_limit: int = 3,
) -> Extraction:
    '''
    Run every rule over every entry, in feed order.

    Currently reading: the first match wins unless a later one is strictly newer.
    Finished: merged across rules, de-duplicated by (title, author), dropped if
    dated before the trailing recent_months window, sorted newest first (undated
    last, in feed order), then cut to recent_limit. 0 disables window or limit.
    '''
    log = structlog.get_logger()
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    horizon = now - relativedelta(months=recent_months) if recent_months > 0 else None

    current: BookFact | None = None
    finished: dict[tuple[str, str], tuple[BookFact, int]] = {}

    for index, entry in enumerate(entries):
        title_lc = entry.title.lower()
        desc_lc = entry.description.lower()
        log.debug('checking entry', index=index, title=entry.title)
        for rule in rules:
            if not rule.triggered(title_lc, desc_lc):
                continue
            fact = rule.apply(entry)
            if fact is None:
                log.debug('rule triggered but no complete match', rule=rule.name, title=entry.title)
                continue

            if rule.kind == CURRENT:
                if current is None or _newer(fact, current):
                    current = fact
                    log.info('found currently reading', title=fact.title, author=fact.author, rule=rule.name)
                continue

            if horizon is not None and fact.timestamp is not None and fact.timestamp < horizon:
                log.debug('finished book outside window', title=fact.title, finished=fact.timestamp.isoformat())
                continue
            key = (fact.title.lower(), fact.author.lower())
            kept = finished.get(key)
            if kept is None:
                finished[key] = (fact, index)
            elif _newer(fact, kept[0]):
                finished[key] = (fact, kept[1])
            log.info('found recently read', title=fact.title, author=fact.author, rule=rule.name)

    def _order(item: tuple[BookFact, int]):
        fact, position = item
        if fact.timestamp is None:
            return (1, 0.0, position)
        return (0, -fact.timestamp.timestamp(), position)

    ordered = [fact for fact, _ in sorted(finished.values(), key=_order)]
    if recent_limit > 0:
        ordered = ordered[:recent_limit]
    return Extraction(current=current, finished=ordered)

'''Render extracted facts into the fixed-width status text published to the gist.'''

import textwrap
from dataclasses import dataclass
from datetime import datetime

from bookgist.extract import BookFact, Extraction

NOT_READING = "I'm not reading anything at the moment."
NOTHING_RECENT = "I haven't read anything recently."


@dataclass(frozen=True)
class StatusSnapshot:
    '''The two rendered segments; text is what gets published.'''

    currently_reading: str
    recently_read: str

    @property
    def text(self) -> str:
        return f'{self.currently_reading}\n{self.recently_read}'


def format_date(dt: datetime) -> str:
    '''e.g. Jan 5, 2024'''
    return f'{dt:%b} {dt.day}, {dt.year}'


def wrap(text: str, width: int) -> str:
    '''Break at word boundaries only; a word longer than width stays whole.'''
    if width <= 0:
        return text
    return textwrap.fill(text, width=width, break_long_words=False, break_on_hyphens=False)


def currently_reading_line(fact: BookFact | None) -> str:
    if fact is None:
        return NOT_READING
    line = f'Currently reading: {fact.title} by {fact.author}'
    if fact.timestamp is not None:
        line += f' (started {format_date(fact.timestamp)})'
    return line


def recently_read_lines(facts: list[BookFact]) -> list[str]:
    if not facts:
        return [NOTHING_RECENT]
    lines = []
    for fact in facts:
        line = f'Recently read: {fact.title} by {fact.author}'
        if fact.timestamp is not None:
            line += f' ({format_date(fact.timestamp)})'
        lines.append(line)
    return lines


def render_status(extraction: Extraction, width: int = 58) -> StatusSnapshot:
    '''Currently-reading segment first, then one wrapped line per finished book.'''
    return StatusSnapshot(
        currently_reading=wrap(currently_reading_line(extraction.current), width),
        recently_read='\n'.join(wrap(line, width) for line in recently_read_lines(extraction.finished)),
    )


def fallback_snapshot(width: int = 58) -> StatusSnapshot:
    '''Snapshot published when the feed could not be fetched or parsed.'''
    return render_status(Extraction(), width)

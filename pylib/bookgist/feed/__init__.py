'''Feed ingestion: XML repair and tolerant parsing into entries.'''

from bookgist.feed.parser import FeedEntry, ParsedFeed, parse_feed, parse_timestamp
from bookgist.feed.sanitize import repair_xml, sanitize_xml

__all__ = [
    'FeedEntry',
    'ParsedFeed',
    'parse_feed',
    'parse_timestamp',
    'repair_xml',
    'sanitize_xml',
]

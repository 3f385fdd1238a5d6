'''Data fetchers: reading-activity feed over HTTP.'''

from bookgist.fetchers.http import fetch_feed

__all__ = ['fetch_feed']

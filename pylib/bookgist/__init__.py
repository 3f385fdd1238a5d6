'''
bookgist: publish what you are reading, from a reading-activity feed, to a gist.

Pipeline: fetch feed -> sanitize -> parse -> extract facts -> format -> publish.
'''

from bookgist.config import StatusConfig
from bookgist.errors import (
    FetchError,
    ParseError,
    PublishError,
    PublishReadError,
    PublishWriteError,
    StatusError,
)
from bookgist.pipeline import RunReport, run_update

__all__ = [
    'FetchError',
    'ParseError',
    'PublishError',
    'PublishReadError',
    'PublishWriteError',
    'RunReport',
    'StatusConfig',
    'StatusError',
    'run_update',
]

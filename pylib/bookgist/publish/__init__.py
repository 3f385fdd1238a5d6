'''Snapshot publishing to an external text store (GitHub gist).'''

from bookgist.publish.gist import GistPublisher, PublishOutcome

__all__ = ['GistPublisher', 'PublishOutcome']

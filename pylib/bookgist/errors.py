'''Error taxonomy for one status update run.'''


class StatusError(Exception):
    '''Base for failures raised by a pipeline stage.'''


class FetchError(StatusError):
    '''Feed could not be retrieved (network failure, timeout, bad status after retries).'''


class ParseError(StatusError):
    '''No entries could be read from the feed after every sanitization tier.'''


class PublishError(StatusError):
    '''Base for gist read/write failures.'''


class PublishReadError(PublishError):
    '''Target gist unreachable, unauthorized or missing its file.'''


class PublishWriteError(PublishError):
    '''Gist update was rejected.'''

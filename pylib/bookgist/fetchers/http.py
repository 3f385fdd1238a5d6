'''Feed fetcher using httpx, with bounded retry via tenacity.'''

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from bookgist.errors import FetchError

USER_AGENT = 'bookgist/0.1 (+reading status feed reader)'


def _is_transient(exc: BaseException) -> bool:
    '''Network errors, timeouts, 429 and 5xx are worth another attempt. A bad URL is not.'''
    if isinstance(exc, (httpx.UnsupportedProtocol, httpx.LocalProtocolError)):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


async def fetch_feed(
    url: str,
    *,
    retries: int = 2,
    timeout: float = 15.0,
    backoff: float = 0.5,
    client: httpx.AsyncClient | None = None,
) -> str:
    '''
    Fetch feed URL and return body as text. Read-only.

    retries: extra attempts after the first, only for transient failures.
    Raises FetchError once retries are exhausted or on a non-transient failure.
    '''
    log = structlog.get_logger()

    async def _get(c: httpx.AsyncClient) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(1 + max(retries, 0)),
            wait=wait_exponential(multiplier=backoff, min=backoff, max=4),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                log.info('fetching feed', url=url, attempt=attempt.retry_state.attempt_number)
                resp = await c.get(url, headers={'User-Agent': USER_AGENT}, timeout=timeout)
                resp.raise_for_status()
                log.info('feed fetched', url=url, status=resp.status_code, chars=len(resp.text))
                return resp.text
        raise FetchError(f'Feed fetch gave up: {url}')

    try:
        if client is not None:
            return await _get(client)
        async with httpx.AsyncClient(follow_redirects=True) as c:
            return await _get(c)
    except httpx.HTTPStatusError as e:
        raise FetchError(f'Feed returned HTTP {e.response.status_code}: {url}') from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise FetchError(f'Feed fetch failed: {url}: {e!r}') from e

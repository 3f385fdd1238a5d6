'''Publish the status snapshot to a GitHub gist, only when it changed.'''

from enum import Enum

import httpx
import structlog

from bookgist.config import DEFAULT_API_URL
from bookgist.errors import PublishReadError, PublishWriteError


class PublishOutcome(str, Enum):
    UNCHANGED = 'unchanged'
    UPDATED = 'updated'


class GistPublisher:
    '''
    Reads the gist's first file and replaces its content when it differs.
    Read-before-write is the only concurrency control; overlapping runs can race.
    '''

    def __init__(
        self,
        gist_id: str,
        token: str,
        api_url: str = DEFAULT_API_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.gist_id = gist_id
        self.token = token
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self._client = client

    @property
    def gist_url(self) -> str:
        return f'{self.api_url}/gists/{self.gist_id}'

    def _headers(self) -> dict[str, str]:
        return {
            'Authorization': f'Bearer {self.token}',
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': '2022-11-28',
        }

    async def read(self, client: httpx.AsyncClient) -> tuple[str, str]:
        '''
        Return (filename, content) of the gist's first file.
        Raises PublishReadError if the gist cannot be read or has no files.
        '''
        try:
            resp = await client.get(self.gist_url, headers=self._headers())
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise PublishReadError(f'Unable to get gist {self.gist_id}: HTTP {e.response.status_code}') from e
        except (httpx.HTTPError, ValueError) as e:
            raise PublishReadError(f'Unable to get gist {self.gist_id}: {e!r}') from e

        files = data.get('files') if isinstance(data, dict) else None
        if not files:
            raise PublishReadError(f'Gist {self.gist_id} has no files')
        filename = next(iter(files))
        info = files[filename] or {}
        content = info.get('content')
        if info.get('truncated') or content is None:
            # Large files come back truncated; the raw URL has the full text
            raw_url = info.get('raw_url')
            if not raw_url:
                raise PublishReadError(f'Gist {self.gist_id} file {filename} has no readable content')
            try:
                raw = await client.get(raw_url)
                raw.raise_for_status()
            except httpx.HTTPError as e:
                raise PublishReadError(f'Unable to get gist file {filename}: {e!r}') from e
            content = raw.text
        return filename, content

    async def write(self, client: httpx.AsyncClient, filename: str, text: str) -> None:
        '''Replace the file's content. Raises PublishWriteError if rejected.'''
        payload = {'files': {filename: {'filename': filename, 'content': text}}}
        try:
            resp = await client.patch(self.gist_url, headers=self._headers(), json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PublishWriteError(f'Unable to update gist {self.gist_id}: HTTP {e.response.status_code}') from e
        except httpx.HTTPError as e:
            raise PublishWriteError(f'Unable to update gist {self.gist_id}: {e!r}') from e

    async def _publish(self, client: httpx.AsyncClient, text: str) -> PublishOutcome:
        log = structlog.get_logger()
        filename, current = await self.read(client)
        if current == text:
            log.info("reading status hasn't changed; skipping update", gist_id=self.gist_id, filename=filename)
            return PublishOutcome.UNCHANGED
        await self.write(client, filename, text)
        log.info('gist updated', gist_id=self.gist_id, filename=filename, chars=len(text))
        return PublishOutcome.UPDATED

    async def publish(self, text: str) -> PublishOutcome:
        '''At most one write: skipped when the gist already holds exactly this text.'''
        if self._client is not None:
            return await self._publish(self._client, text)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._publish(client, text)

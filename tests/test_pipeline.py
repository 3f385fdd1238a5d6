from datetime import datetime, timezone

import httpx
import pytest

from bookgist.config import StatusConfig
from bookgist.errors import FetchError, ParseError, PublishReadError, PublishWriteError
from bookgist.pipeline import StageResult, run_update, to_snapshot
from bookgist.publish import PublishOutcome
from bookgist.render import fallback_snapshot
from fakes import API, FakeGists

NOW = datetime(2024, 7, 1, tzinfo=timezone.utc)
FALLBACK = "I'm not reading anything at the moment.\nI haven't read anything recently."
EXPECTED = (
    'Currently reading: Project Hail Mary by Andy Weir (started Jun 10, 2024)\n'
    'Recently read: Dune by Frank Herbert (Jun 1, 2024)\n'
    "Recently read: Tom & Jerry's Guide by Hanna Barbera (May 15, 2024)"
)


def make_config(**overrides) -> StatusConfig:
    settings = dict(
        feed_url='https://example.com/feed.xml',
        gist_id='abc',
        github_token='secret-token',
        wrap_width=100,
        fetch_retries=0,
        api_url=API,
    )
    settings.update(overrides)
    return StatusConfig(**settings)


def feed_client(body: str = '', status: int = 200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, text=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), requests


@pytest.mark.asyncio
async def test_publishes_then_idempotent(load_feed):
    gists = FakeGists()
    body = load_feed('goodreads_updates.xml')

    client, _ = feed_client(body)
    first = await run_update(make_config(), feed_client=client, publisher=gists.publisher(), now=NOW)
    assert first.outcome is PublishOutcome.UPDATED
    assert first.fallback is False
    assert first.error is None
    assert gists.files['reading.txt']['content'] == EXPECTED

    client, _ = feed_client(body)
    second = await run_update(make_config(), feed_client=client, publisher=gists.publisher(), now=NOW)
    assert second.outcome is PublishOutcome.UNCHANGED
    assert len(gists.patches) == 1


@pytest.mark.asyncio
async def test_fetch_failure_publishes_fallback():
    gists = FakeGists()
    client, requests = feed_client(status=500)
    report = await run_update(make_config(), feed_client=client, publisher=gists.publisher(), now=NOW)
    assert len(requests) == 1
    assert report.fallback is True
    assert isinstance(report.error, FetchError)
    assert report.outcome is PublishOutcome.UPDATED
    assert gists.files['reading.txt']['content'] == FALLBACK


@pytest.mark.asyncio
async def test_parse_failure_publishes_fallback():
    gists = FakeGists()
    client, _ = feed_client('this is not a feed')
    report = await run_update(make_config(), feed_client=client, publisher=gists.publisher(), now=NOW)
    assert isinstance(report.error, ParseError)
    assert gists.files['reading.txt']['content'] == FALLBACK


@pytest.mark.asyncio
async def test_no_matches_publishes_fallback_text():
    gists = FakeGists()
    client, _ = feed_client('<rss><channel><item><title>Joined a group</title></item></channel></rss>')
    report = await run_update(make_config(), feed_client=client, publisher=gists.publisher(), now=NOW)
    assert report.fallback is False
    assert gists.files['reading.txt']['content'] == FALLBACK


@pytest.mark.asyncio
async def test_missing_feed_url_publishes_fallback():
    gists = FakeGists()
    report = await run_update(make_config(feed_url=''), publisher=gists.publisher(), now=NOW)
    assert isinstance(report.error, FetchError)
    assert gists.files['reading.txt']['content'] == FALLBACK


@pytest.mark.asyncio
async def test_read_failure_no_write(load_feed):
    gists = FakeGists(get_status=404)
    client, _ = feed_client(load_feed('simple_atom.xml'))
    report = await run_update(make_config(), feed_client=client, publisher=gists.publisher(), now=NOW)
    assert isinstance(report.error, PublishReadError)
    assert report.outcome is None
    assert gists.patches == []


@pytest.mark.asyncio
async def test_write_failure_swallowed(load_feed):
    gists = FakeGists(patch_status=403)
    client, _ = feed_client(load_feed('simple_atom.xml'))
    report = await run_update(make_config(), feed_client=client, publisher=gists.publisher(), now=NOW)
    assert isinstance(report.error, PublishWriteError)
    assert report.outcome is None


@pytest.mark.asyncio
async def test_missing_publish_config_skips_everything():
    gists = FakeGists()
    client, requests = feed_client('<rss/>')
    report = await run_update(make_config(gist_id=''), feed_client=client, publisher=gists.publisher())
    assert report.skipped is True
    assert report.snapshot is None
    assert requests == []
    assert gists.requests == []


@pytest.mark.asyncio
async def test_dry_run_never_touches_gist(load_feed):
    gists = FakeGists()
    client, _ = feed_client(load_feed('simple_atom.xml'))
    report = await run_update(
        make_config(github_token=''), feed_client=client, publisher=gists.publisher(), now=NOW, dry_run=True
    )
    assert report.snapshot.text == (
        'Currently reading: The Left Hand of Darkness by Ursula K. Le Guin (started Jun 20, 2024)\n'
        'Recently read: Project Hail Mary by Andy Weir (Jun 18, 2024)'
    )
    assert gists.requests == []


def test_stage_result_short_circuits():
    failed = StageResult('fetch', error=FetchError('down'))
    called = []
    after = failed.then('parse', lambda value: called.append(value))
    assert after is failed
    assert called == []


def test_stage_result_captures_typed_errors():
    def boom(value):
        raise ParseError('bad')

    result = StageResult('fetch', 'text').then('parse', boom)
    assert result.stage == 'parse'
    assert isinstance(result.error, ParseError)


def test_reducer_maps_failure_to_fallback():
    snapshot, used_fallback = to_snapshot(StageResult('parse', error=ParseError('bad')), 58)
    assert used_fallback is True
    assert snapshot == fallback_snapshot(58)


@pytest.mark.asyncio
async def test_default_publisher_takes_timeout_from_config(load_feed, monkeypatch):
    built = {}

    class RecordingPublisher:
        def __init__(self, gist_id, token, **kwargs):
            built.update(kwargs, gist_id=gist_id)

        async def publish(self, text):
            return PublishOutcome.UNCHANGED

    monkeypatch.setattr('bookgist.pipeline.GistPublisher', RecordingPublisher)
    client, _ = feed_client(load_feed('goodreads_updates.xml'))
    report = await run_update(make_config(publish_timeout=5.0), feed_client=client, now=NOW)
    assert report.outcome is PublishOutcome.UNCHANGED
    assert built == {'gist_id': 'abc', 'api_url': API, 'timeout': 5.0}

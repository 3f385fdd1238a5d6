'''
One update run: fetch feed, parse, extract, render, publish.

Stages return StageResult instead of raising. A failed fetch or parse maps to
the fallback snapshot, which is still published. Nothing here raises for
FetchError, ParseError or PublishError; the next scheduled run self-heals.
'''

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
import structlog

from bookgist.config import StatusConfig
from bookgist.errors import FetchError, PublishReadError, PublishWriteError, StatusError
from bookgist.extract import extract_facts
from bookgist.feed.parser import parse_feed
from bookgist.fetchers import fetch_feed
from bookgist.publish import GistPublisher, PublishOutcome
from bookgist.render import StatusSnapshot, fallback_snapshot, render_status


@dataclass
class StageResult:
    '''Value of a pipeline stage, or the typed error that stopped it.'''

    stage: str
    value: Any = None
    error: StatusError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def then(self, stage: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> 'StageResult':
        '''Feed this value to the next stage; a failure passes through untouched.'''
        if not self.ok:
            return self
        try:
            return StageResult(stage, fn(self.value, *args, **kwargs))
        except StatusError as e:
            return StageResult(stage, error=e)


@dataclass
class RunReport:
    '''What one run did.'''

    snapshot: StatusSnapshot | None = None
    fallback: bool = False  # snapshot is the "nothing found" text because a stage failed
    outcome: PublishOutcome | None = None  # None when nothing was published
    error: StatusError | None = None  # first failure, if any
    skipped: bool = False  # required configuration missing


async def fetch_stage(config: StatusConfig, client: httpx.AsyncClient | None = None) -> StageResult:
    if not config.feed_url:
        return StageResult('fetch', error=FetchError('RSS_FEED_URL is not set'))
    try:
        text = await fetch_feed(
            config.feed_url,
            retries=config.fetch_retries,
            timeout=config.fetch_timeout,
            client=client,
        )
    except FetchError as e:
        return StageResult('fetch', error=e)
    return StageResult('fetch', text)


def to_snapshot(result: StageResult, width: int) -> tuple[StatusSnapshot, bool]:
    '''Top-level reducer: any failed stage becomes the deterministic fallback.'''
    if result.ok:
        return render_status(result.value, width), False
    structlog.get_logger().warning(
        'using fallback status', stage=result.stage, error=str(result.error), error_type=type(result.error).__name__
    )
    return fallback_snapshot(width), True


async def build_status(
    config: StatusConfig,
    *,
    feed_client: httpx.AsyncClient | None = None,
    now: datetime | None = None,
) -> tuple[StatusSnapshot, StageResult]:
    '''Fetch, parse, extract and render. Returns the snapshot and the last stage result.'''
    extracted = (await fetch_stage(config, feed_client)).then('parse', parse_feed).then(
        'extract',
        lambda feed: extract_facts(
            feed.entries,
            now=now,
            recent_months=config.recent_months,
            recent_limit=config.recent_limit,
        ),
    )
    snapshot, _ = to_snapshot(extracted, config.wrap_width)
    return snapshot, extracted


async def run_update(
    config: StatusConfig,
    *,
    feed_client: httpx.AsyncClient | None = None,
    publisher: GistPublisher | None = None,
    now: datetime | None = None,
    dry_run: bool = False,
) -> RunReport:
    '''
    One run. Publishes at most once, and only when the gist text differs.
    dry_run: render only, never touch the gist.
    '''
    log = structlog.get_logger()
    missing = config.missing()
    if missing and not dry_run:
        log.error('missing required configuration; not publishing', missing=missing)
        return RunReport(skipped=True)

    snapshot, result = await build_status(config, feed_client=feed_client, now=now)
    report = RunReport(snapshot=snapshot, fallback=not result.ok, error=result.error)
    if dry_run:
        log.info('dry run; not publishing', chars=len(snapshot.text))
        return report

    publisher = publisher or GistPublisher(
        config.gist_id, config.github_token, api_url=config.api_url, timeout=config.publish_timeout
    )
    try:
        report.outcome = await publisher.publish(snapshot.text)
    except PublishReadError as e:
        # Cannot compare, so cannot safely write
        log.error('unable to read gist; skipping update', gist_id=config.gist_id, error=str(e))
        report.error = report.error or e
    except PublishWriteError as e:
        log.error('unable to update gist', gist_id=config.gist_id, error=str(e))
        report.error = report.error or e
    return report

'''CLI: publish reading status from a feed to a gist.'''

import asyncio
import logging

import fire
import structlog
from rich.console import Console
from rich.panel import Panel

from bookgist.config import StatusConfig
from bookgist.pipeline import build_status, run_update


def _configure_logging(verbose: bool = False) -> None:
    '''Send structlog output to the console at INFO, or DEBUG when verbose. Tracebacks print plain.'''
    from structlog.contextvars import merge_contextvars
    from structlog.dev import ConsoleRenderer, plain_traceback, set_exc_info
    from structlog.processors import StackInfoRenderer, TimeStamper, add_log_level

    structlog.configure(
        processors=[
            merge_contextvars,
            add_log_level,
            StackInfoRenderer(),
            set_exc_info,
            TimeStamper(fmt='%Y-%m-%d %H:%M:%S', utc=False),
            ConsoleRenderer(exception_formatter=plain_traceback),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
    )


def main() -> None:
    '''bookgist: publish what you are reading to a gist.'''
    fire.Fire({
        'run': run_once,
        'preview': preview,
    })


def run_once(env_file: str = '.env', dry_run: bool = False, verbose: bool = False) -> None:
    '''
    Fetch the feed and update the gist if the status changed. Always exits 0.
    env_file: optional .env with RSS_FEED_URL, GIST_ID, GH_TOKEN (process env wins)
    dry_run: render the status but do not touch the gist
    verbose: log every entry checked
    '''
    _configure_logging(verbose)
    config = StatusConfig.from_env(env_file)
    try:
        report = asyncio.run(run_update(config, dry_run=dry_run))
    except Exception:
        structlog.get_logger().exception('update run failed')
        return
    if dry_run and report.snapshot:
        Console().print(Panel(report.snapshot.text, title='bookgist (dry run)'))


def preview(feed_url: str = '', width: int = 0, env_file: str = '.env', verbose: bool = False) -> None:
    '''
    Render the status from a feed and print it. Never publishes.
    feed_url: overrides RSS_FEED_URL
    width: overrides WRAP_WIDTH
    '''
    _configure_logging(verbose)
    config = StatusConfig.from_env(env_file, feed_url=feed_url, wrap_width=width or None)
    snapshot, result = asyncio.run(build_status(config))
    title = 'bookgist' if result.ok else f'bookgist (fallback: {result.stage} failed)'
    Console().print(Panel(snapshot.text, title=title))

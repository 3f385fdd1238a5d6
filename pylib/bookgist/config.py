'''
Run configuration, built once from the environment and passed to each stage.

Recognized settings (process env wins over an optional .env file):
- RSS_FEED_URL: reading-activity feed (required)
- GIST_ID: target gist (required)
- GH_TOKEN (or GITHUB_TOKEN): token with gist scope (required)
- WRAP_WIDTH, RECENT_MONTHS, RECENT_LIMIT, FETCH_RETRIES, FETCH_TIMEOUT, PUBLISH_TIMEOUT,
  GITHUB_API_URL
'''

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

from dotenv import dotenv_values

DEFAULT_API_URL = 'https://api.github.com'


def _env_int(env: dict[str, str], key: str, default: int) -> int:
    try:
        return int(env.get(key, default))
    except ValueError:
        return default


def _env_float(env: dict[str, str], key: str, default: float) -> float:
    try:
        return float(env.get(key, default))
    except ValueError:
        return default


@dataclass(frozen=True)
class StatusConfig:
    '''Settings for one update run.'''

    feed_url: str = ''
    gist_id: str = ''
    github_token: str = ''
    wrap_width: int = 58
    recent_months: int = 6  # 0 disables the recency window
    recent_limit: int = 3  # 0 renders every finished book found
    fetch_retries: int = 2
    fetch_timeout: float = 15.0
    publish_timeout: float = 30.0
    api_url: str = DEFAULT_API_URL

    @classmethod
    def from_env(cls, env_file: str | Path | None = None, **overrides) -> StatusConfig:
        '''Build config from env vars, an optional .env file and explicit overrides.'''
        env: dict[str, str] = {}
        if env_file and Path(env_file).exists():
            env.update({k: str(v) for k, v in dotenv_values(env_file).items() if v is not None})
        env.update(os.environ)
        cfg = cls(
            feed_url=env.get('RSS_FEED_URL', '').strip(),
            gist_id=env.get('GIST_ID', '').strip(),
            github_token=(env.get('GH_TOKEN') or env.get('GITHUB_TOKEN') or '').strip(),
            wrap_width=_env_int(env, 'WRAP_WIDTH', cls.wrap_width),
            recent_months=_env_int(env, 'RECENT_MONTHS', cls.recent_months),
            recent_limit=_env_int(env, 'RECENT_LIMIT', cls.recent_limit),
            fetch_retries=_env_int(env, 'FETCH_RETRIES', cls.fetch_retries),
            fetch_timeout=_env_float(env, 'FETCH_TIMEOUT', cls.fetch_timeout),
            publish_timeout=_env_float(env, 'PUBLISH_TIMEOUT', cls.publish_timeout),
            api_url=(env.get('GITHUB_API_URL') or DEFAULT_API_URL).rstrip('/'),
        )
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f'Unknown config settings: {", ".join(sorted(unknown))}')
        # CLI passes '' / None for options the user did not give
        given = {k: v for k, v in overrides.items() if v not in (None, '')}
        return replace(cfg, **given) if given else cfg

    def missing(self) -> list[str]:
        '''
        Names of publish settings that are unset. A missing feed URL is not
        listed: it yields the fallback snapshot instead.
        '''
        required = {
            'GIST_ID': self.gist_id,
            'GH_TOKEN': self.github_token,
        }
        return [name for name, value in required.items() if not value]

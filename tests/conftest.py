from pathlib import Path

import pytest

FEEDS = Path(__file__).parent / 'feeds'


@pytest.fixture
def load_feed():
    def _load(name: str) -> str:
        return (FEEDS / name).read_text(encoding='utf-8')
    return _load

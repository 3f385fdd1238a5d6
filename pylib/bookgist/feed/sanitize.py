'''
Repairs for malformed feed XML, applied before strict parsing.

Two tiers:
- sanitize_xml: escape bare ampersands, leaving CDATA blocks untouched.
- repair_xml: aggressive, for badly broken documents. Escapes every angle
  bracket, then turns recognizable tags back into real markup.

Both are idempotent and never raise.
'''

import re
from html.entities import name2codepoint

# Private-use code points; they never appear in a sane feed
_PH_OPEN = '\ue000'
_PH_CLOSE = '\ue001'
_PLACEHOLDER = re.compile(f'{_PH_OPEN}(\\d+){_PH_CLOSE}')

CDATA_PATTERN = re.compile(r'<!\[CDATA\[.*?\]\]>', re.DOTALL)

# Markup that the aggressive tier must pass through verbatim
_PRESERVED = re.compile(
    r'<!\[CDATA\[.*?\]\]>'
    r'|<!--.*?-->'
    r'|<\?.*?\?>'
    r'|<!DOCTYPE[^>]*>',
    re.DOTALL | re.IGNORECASE,
)

BARE_AMPERSAND = re.compile(r'&(?!(?:[a-zA-Z][a-zA-Z0-9]*|#[0-9]+|#x[0-9a-fA-F]+);)')

_ESCAPED_BRACKET = re.compile(r'&(?:lt|gt|#0*6[02]|#x0*3[cCeE]);')
_NAMED_ENTITY = re.compile(r'&([a-zA-Z][a-zA-Z0-9]*);')
_XML_ENTITIES = {'amp', 'lt', 'gt', 'quot', 'apos'}

_NAME = r'[A-Za-z_][\w.:-]*'
_ATTR = rf'\s+{_NAME}\s*=\s*(?:"[^"]*"|\'[^\']*\')'
_ESCAPED_TAG = re.compile(rf'&lt;(/?{_NAME}(?:{_ATTR})*\s*/?)&gt;')
# "</title" that lost its ">" right before the next tag or the end of the text
_UNTERMINATED_CLOSE = re.compile(rf'&lt;(/{_NAME})(?=\s*(?:&lt;|\Z))')
# Illegal in XML 1.0
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]')


def _protect(text: str, pattern: re.Pattern, store: list[str]) -> str:
    '''Swap each match for a numbered placeholder, keeping the original in store.'''
    def _stash(m: re.Match) -> str:
        store.append(m.group(0))
        return f'{_PH_OPEN}{len(store) - 1}{_PH_CLOSE}'
    return pattern.sub(_stash, text)


def _restore(text: str, store: list[str]) -> str:
    if not store:
        return text

    def _unstash(m: re.Match) -> str:
        idx = int(m.group(1))
        return store[idx] if idx < len(store) else m.group(0)
    return _PLACEHOLDER.sub(_unstash, text)


def escape_ampersands(text: str) -> str:
    '''Escape every & that does not start an entity or character reference.'''
    return BARE_AMPERSAND.sub('&amp;', text)


def sanitize_xml(text: str) -> str:
    '''
    Light repair: escape bare ampersands outside CDATA blocks.

    >>> sanitize_xml('<title>Tom & Jerry</title>')
    '<title>Tom &amp; Jerry</title>'
    '''
    if not text or '&' not in text:
        return text or ''
    store: list[str] = []
    out = _protect(text, CDATA_PATTERN, store)
    out = escape_ampersands(out)
    return _restore(out, store)


def _numeric_entity(m: re.Match) -> str:
    name = m.group(1)
    if name in _XML_ENTITIES:
        return m.group(0)
    if name in name2codepoint:
        return f'&#{name2codepoint[name]};'
    # Unknown entity; keep it as literal text
    return f'&amp;{name};'


def repair_xml(text: str) -> str:
    '''
    Aggressive repair of severely malformed markup. Best effort; the result
    may still not be well-formed.

    CDATA, comments, processing instructions and existing &lt;/&gt; text are
    left alone. HTML-only named entities become numeric references.
    '''
    if not text:
        return ''
    store: list[str] = []
    out = _CONTROL_CHARS.sub('', text)
    out = _protect(out, _PRESERVED, store)
    out = _protect(out, _ESCAPED_BRACKET, store)
    out = _NAMED_ENTITY.sub(_numeric_entity, out)
    out = escape_ampersands(out)
    out = out.replace('<', '&lt;').replace('>', '&gt;')
    out = _UNTERMINATED_CLOSE.sub(r'&lt;\1&gt;', out)
    out = _ESCAPED_TAG.sub(r'<\1>', out)
    return _restore(out, store)

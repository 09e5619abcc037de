# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import logging
import re
from datetime import datetime, timezone
from functools import cache
from urllib.parse import urljoin, urlparse

from .errors import InvalidURLError
from .models import FeedKind

_TAG_RE = re.compile(r'<[^>]*>')
_SPACES_RE = re.compile(r'\s+')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def strip_markup(html: str) -> str:
    '''
    Remove all tags, collapse whitespace and trim.
    '''
    text = _TAG_RE.sub(' ', html)
    # stray brackets from unbalanced markup
    text = text.replace('<', ' ').replace('>', ' ')
    return _SPACES_RE.sub(' ', text).strip()


def normalize_site_url(site_url: str) -> str:
    '''
    Return `site_url` with a scheme, assuming `https` when missing.
    '''
    site_url = (site_url or '').strip()
    if not site_url:
        raise InvalidURLError('url is empty')

    if '://' not in site_url:
        site_url = 'https://' + site_url.lstrip('/')

    parsed = urlparse(site_url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise InvalidURLError(f'invalid url: {site_url!r}')
    return site_url


def get_base_url(site_url: str) -> str:
    parsed = urlparse(site_url)
    return f'{parsed.scheme}://{parsed.netloc}'


def resolve_url(base_url: str, href: str) -> str:
    if href.startswith(('http://', 'https://')):
        return href
    return urljoin(base_url + '/', href)


def detect_feed_kind(text: str) -> FeedKind:
    '''
    Guess the feed kind from a URL or a mime type.
    '''
    lower = text.lower()
    if 'atom' in lower:
        return 'atom'
    if 'rss' in lower:
        return 'rss'
    return 'unknown'


@cache
def get_logger() -> logging.Logger:
    return logging.getLogger('feedpoller')

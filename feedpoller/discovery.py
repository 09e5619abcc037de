# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

'''
Best-effort discovery of feed URLs for a website.

Each probe looks at the site in its own way and may fail on its own;
`discover` merges what the probes found, first occurrence wins.
'''

import re
from collections.abc import Iterable
from logging import getLogger
from typing import Protocol

import requests
from bs4 import BeautifulSoup

from ._utils import detect_feed_kind, get_base_url, normalize_site_url, resolve_url
from .models import FeedCandidate

logger = getLogger(__name__)

HEADERS = {
    'User-Agent': 'feedpoller/0.1',
}

WELL_KNOWN_FEED_PATHS = (
    '/feed',
    '/feed.xml',
    '/rss',
    '/rss.xml',
    '/atom.xml',
    '/feed.atom',
    '/feeds/posts/default', # Blogger
    '/?feed=rss2',          # WordPress
    '/?feed=atom',          # WordPress
    '/index.xml',           # Hugo
)

FEED_MARKERS = ('<rss', '<feed', '<atom', '<?xml')

CONTENT_FEED_PATTERNS = (
    re.compile(r'''href=["']([^"']*(?:feed|rss|atom)[^"']*)["']'''),
    re.compile(r'''href=["']([^"']*\.xml)["']'''),
)


class FeedProbe(Protocol):
    def probe(self, site_url: str) -> list[FeedCandidate]: ...


class _HttpProbe:
    timeout: float = 10

    def __init__(self, *, session: requests.Session | None = None, timeout: float | None = None) -> None:
        self._session = session
        if timeout is not None:
            self.timeout = timeout

    def _get(self, url: str, **kwargs) -> requests.Response:
        http = self._session or requests
        return http.get(url, headers=HEADERS, timeout=self.timeout, **kwargs)

    def _get_page(self, url: str) -> requests.Response:
        r = self._get(url)
        r.raise_for_status()
        return r


class WellKnownPathsProbe(_HttpProbe):
    '''
    Try the paths that common blog engines and CMSs serve their feeds on.
    '''
    timeout = 5

    def __init__(self, paths: Iterable[str] = WELL_KNOWN_FEED_PATHS, **kwargs) -> None:
        super().__init__(**kwargs)
        self._paths = tuple(paths)

    def looks_like_feed(self, url: str) -> bool:
        try:
            with self._get(url, stream=True) as r:
                if r.status_code != 200:
                    return False
                head = next(r.iter_content(1024), b'')
        except requests.RequestException as error:
            logger.debug('probe %s failure with %s', url, error)
            return False

        if isinstance(head, bytes):
            head = head.decode('utf-8', errors='ignore')
        head = head[:1024].lower()
        return any(marker in head for marker in FEED_MARKERS)

    def probe(self, site_url: str) -> list[FeedCandidate]:
        base_url = get_base_url(site_url)
        candidates: list[FeedCandidate] = []
        for path in self._paths:
            feed_url = base_url + path
            if self.looks_like_feed(feed_url):
                candidates.append({'url': feed_url, 'title': '', 'type': detect_feed_kind(feed_url)})
        return candidates


class HtmlLinkProbe(_HttpProbe):
    '''
    Read `<link rel="alternate">` declarations from the page head.
    '''

    def probe(self, site_url: str) -> list[FeedCandidate]:
        base_url = get_base_url(site_url)
        r = self._get_page(site_url)
        soup = BeautifulSoup(r.content, 'html.parser')

        candidates: list[FeedCandidate] = []
        for link in soup.find_all('link'):
            rel = link.get('rel') or []
            if isinstance(rel, str):
                rel = rel.split()
            if 'alternate' not in (x.lower() for x in rel):
                continue
            href = (link.get('href') or '').strip()
            feed_type = (link.get('type') or '').lower()
            if href and ('rss' in feed_type or 'atom' in feed_type or 'xml' in feed_type):
                candidates.append({
                    'url': resolve_url(base_url, href),
                    'title': link.get('title') or '',
                    'type': detect_feed_kind(feed_type),
                })
        return candidates


class ContentScanProbe(_HttpProbe):
    '''
    Scan the raw page for anchors that look like feed links.
    '''

    def probe(self, site_url: str) -> list[FeedCandidate]:
        base_url = get_base_url(site_url)
        content = self._get_page(site_url).text

        candidates: list[FeedCandidate] = []
        seen: set[str] = set()
        for pattern in CONTENT_FEED_PATTERNS:
            for href in pattern.findall(content):
                if href in seen or href.startswith(('javascript:', '#')):
                    continue
                seen.add(href)
                feed_url = resolve_url(base_url, href)
                candidates.append({'url': feed_url, 'title': '', 'type': detect_feed_kind(feed_url)})
        return candidates


def default_probes(session: requests.Session | None = None) -> list[FeedProbe]:
    return [
        WellKnownPathsProbe(session=session),
        HtmlLinkProbe(session=session),
        ContentScanProbe(session=session),
    ]

def discover(site_url: str, *, probes: Iterable[FeedProbe] | None = None,
             session: requests.Session | None = None) -> list[FeedCandidate]:
    '''
    Find feed candidates for a website.

    Raises `InvalidURLError` if `site_url` is unusable; a failing probe only
    contributes no candidates.
    '''
    site_url = normalize_site_url(site_url)
    if probes is None:
        probes = default_probes(session)

    candidates: list[FeedCandidate] = []
    seen: set[str] = set()
    for probe in probes:
        try:
            found = probe.probe(site_url)
        except Exception as error:
            logger.info('%s failed on %s: %s', type(probe).__name__, site_url, error)
            continue

        for candidate in found:
            if candidate['url'] not in seen:
                seen.add(candidate['url'])
                candidates.append(candidate)

    logger.info('discovered %d feeds from %s', len(candidates), site_url)
    return candidates

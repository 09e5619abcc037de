# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import sqlite3
from collections.abc import Callable
from typing import Any

import feedparser
import requests

from ._utils import get_logger, utcnow
from .errors import FetchError, ItemError, ParseError, TransportError
from .models import FetchSummary
from .normalizer import normalize
from .stores import SqliteFeedStore

DEFAULT_TIMEOUT = (5, 30)

HEADERS = {
    'User-Agent': 'feedpoller/0.1',
    'Accept': 'application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.9, */*;q=0.8',
}

StoreOpener = Callable[[], SqliteFeedStore]


def download_feed(url: str, *, session: requests.Session | None = None,
                  timeout: float | tuple[float, float] = DEFAULT_TIMEOUT) -> requests.Response:
    '''
    GET the feed document, raise `TransportError` on network failures and non-2xx status.
    '''
    http = session or requests
    try:
        r = http.get(url, headers=HEADERS, timeout=timeout)
    except requests.RequestException as error:
        raise TransportError(f'{type(error).__name__}: {error}', url=url) from error

    try:
        r.raise_for_status()
    except requests.HTTPError as error:
        raise TransportError(str(error), url=url) from error

    return r

def parse_feed(r: requests.Response, url: str) -> Any:
    '''
    Parse a feed document, raise `ParseError` if it is not a feed at all.
    '''
    parsed = feedparser.parse(r.content, response_headers={
        'content-location': url,
        'content-type': r.headers.get('content-type', 'application/xml'),
    })
    if parsed.get('bozo') and not parsed.entries and not parsed.feed.get('title'):
        error = parsed.get('bozo_exception')
        raise ParseError(f'invalid feed: {error}', url=url)
    return parsed

def _record_error(open_store: StoreOpener, feed_id: int, error: FetchError) -> None:
    with open_store() as store:
        store.update_feed_fetch_result(feed_id, None, str(error))
        store.commit()

def fetch_feed(open_store: StoreOpener, feed_id: int, feed_url: str, *,
               session: requests.Session | None = None,
               timeout: float | tuple[float, float] = DEFAULT_TIMEOUT) -> FetchSummary:
    '''
    Fetch one feed and insert the items not seen before.

    On failure the error is written to the feed and a `FetchError` is raised;
    existing items and `last_fetched` are left as they were.
    '''
    logger = get_logger().getChild(feed_url)

    try:
        parsed = parse_feed(download_feed(feed_url, session=session, timeout=timeout), feed_url)
    except FetchError as error:
        error.feed_id = feed_id
        logger.error('fetch feed %s failure with %s', feed_id, error)
        _record_error(open_store, feed_id, error)
        raise

    feed_info = parsed.feed
    title: str = feed_info.get('title') or ''
    summary: FetchSummary = {
        'feed_id': feed_id,
        'title': title,
        'total': len(parsed.entries),
        'inserted': 0,
        'skipped': 0,
        'failed': 0,
    }

    with open_store() as store:
        if title:
            try:
                store.update_feed_metadata(
                    feed_id, title,
                    feed_info.get('subtitle') or feed_info.get('description') or '',
                    feed_info.get('link') or '')
                store.commit()
            except sqlite3.Error as error:
                logger.warning('update metadata of feed %s failure with %s', feed_id, error, exc_info=True)

        now = utcnow()
        for index, entry in enumerate(parsed.entries):
            try:
                item = normalize(entry, now=now)
                inserted = store.insert_item_if_absent(feed_id, item)
                store.commit()
            except ItemError as error:
                summary['failed'] += 1
                logger.warning('skip item #%d: %s', index, error)
            except (sqlite3.Error, TypeError, ValueError) as error:
                summary['failed'] += 1
                logger.warning('skip item #%d: raised %s: %s', index, type(error).__name__, error, exc_info=True)
            else:
                if inserted:
                    summary['inserted'] += 1
                else:
                    summary['skipped'] += 1

        store.update_feed_fetch_result(feed_id, utcnow(), None)
        store.commit()

    logger.info('Fetched feed %s: %s (%d items, %d new)',
        feed_id, title, summary['total'], summary['inserted'])
    return summary

def fetch_now(open_store: StoreOpener, feed_id: int, feed_url: str, **kwargs) -> FetchError | None:
    '''
    Like `fetch_feed` but return the error instead of raising it.
    '''
    try:
        fetch_feed(open_store, feed_id, feed_url, **kwargs)
    except FetchError as error:
        return error
    return None

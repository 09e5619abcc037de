# -*- coding: utf-8 -*-
#
# Copyright (c) 2020~2999 - Cologler <skyoflw@gmail.com>
# ----------
# require packages:
#   - feedparser
#   - requests
#   - beautifulsoup4
# ----------

from .core import FeedScheduler, start_scheduler
from .discovery import discover
from .errors import FetchError, InvalidURLError, ItemError, ParseError, TransportError
from .fetcher import fetch_feed, fetch_now
from .normalizer import normalize

__all__ = [
    'FeedScheduler',
    'FetchError',
    'InvalidURLError',
    'ItemError',
    'ParseError',
    'TransportError',
    'discover',
    'fetch_feed',
    'fetch_now',
    'normalize',
    'start_scheduler',
]

# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from datetime import datetime
from typing import Literal, NotRequired

from typing_extensions import TypedDict

FeedKind = Literal['rss', 'atom', 'unknown']


class FeedRowRecord(TypedDict):
    id: int
    title: str
    url: str
    site_url: str | None
    description: str | None
    fetch_interval: int
    last_fetched: datetime | None
    last_error: str | None
    created_at: datetime
    updated_at: datetime


class ItemRecord(TypedDict):
    '''
    A normalized feed entry, ready to be inserted.
    '''
    guid: str
    title: str
    url: str
    description: str
    content: str
    author: str
    published_at: datetime
    image_url: str


class ArticleRowRecord(ItemRecord):
    id: int
    feed_id: int
    fetched_at: datetime
    is_read: bool
    is_starred: bool
    feed_title: NotRequired[str]


class FeedCandidate(TypedDict):
    url: str
    title: str
    type: FeedKind


class FetchSummary(TypedDict):
    feed_id: int
    title: str
    total: int
    inserted: int
    skipped: int
    failed: int


class StoreStats(TypedDict):
    total_feeds: int
    total_articles: int
    unread_count: int

# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import re
from calendar import timegm
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ._utils import strip_markup, utcnow
from .errors import ItemError
from .models import ItemRecord

_IMG_SRC_RE = re.compile(r'''<img[^>]+src=["']([^"']+)["']''', re.IGNORECASE)


def _get_text(entry: Mapping[str, Any], key: str) -> str:
    value = entry.get(key)
    return value.strip() if isinstance(value, str) else ''

def get_guid(entry: Mapping[str, Any]) -> str:
    '''
    Return the content identifier of an entry: its native id, or its link.
    '''
    return _get_text(entry, 'id') or _get_text(entry, 'link')

def get_author(entry: Mapping[str, Any]) -> str:
    if author_detail := entry.get('author_detail'):
        if name := author_detail.get('name'):
            return name
    return _get_text(entry, 'author')

def get_published_time(entry: Mapping[str, Any], now: datetime | None = None) -> datetime:
    for key in ('published_parsed', 'updated_parsed'):
        if parsed := entry.get(key):
            # feedparser normalizes parsed dates to UTC
            return datetime.fromtimestamp(timegm(parsed), tz=timezone.utc)
    return now or utcnow()

def get_content(entry: Mapping[str, Any]) -> str:
    for content in entry.get('content') or ():
        if value := content.get('value'):
            return value
    return ''

def extract_first_image_from_html(html: str) -> str:
    if m := _IMG_SRC_RE.search(html):
        return m.group(1)
    return ''

def extract_image_url(entry: Mapping[str, Any], content: str | None = None) -> str:
    '''
    Find an image for the entry.

    Looks at, in order: the explicit item image, image enclosures,
    the first `<img>` of the content, the first `<img>` of the summary.
    '''
    if (image := entry.get('image')) and (href := image.get('href')):
        return href
    for thumbnail in entry.get('media_thumbnail') or ():
        if url := thumbnail.get('url'):
            return url

    for enclosure in entry.get('enclosures') or ():
        if (enclosure.get('type') or '').startswith('image/') and enclosure.get('href'):
            return enclosure['href']
    for media in entry.get('media_content') or ():
        if (media.get('type') or '').startswith('image/') and media.get('url'):
            return media['url']

    if content is None:
        content = get_content(entry)
    if content and (url := extract_first_image_from_html(content)):
        return url

    if summary := _get_text(entry, 'summary'):
        return extract_first_image_from_html(summary)

    return ''

def normalize(entry: Mapping[str, Any], *, now: datetime | None = None) -> ItemRecord:
    '''
    Convert a parsed feed entry to an item record.

    Raises `ItemError` if the entry has neither an id nor a link.
    '''
    guid = get_guid(entry)
    if not guid:
        raise ItemError('entry has no id and no link')

    content = get_content(entry)
    return {
        'guid': guid,
        'title': _get_text(entry, 'title'),
        'url': _get_text(entry, 'link'),
        'description': strip_markup(entry.get('summary') or ''),
        'content': content,
        'author': get_author(entry),
        'published_at': get_published_time(entry, now),
        'image_url': extract_image_url(entry, content),
    }

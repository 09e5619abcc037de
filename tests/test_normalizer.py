# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from datetime import datetime, timezone

import feedparser
import pytest

from feedpoller.errors import ItemError
from feedpoller.normalizer import normalize

from fakes import RSS_TWO_ITEMS

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _parse_entries(xml: str):
    return feedparser.parse(xml).entries


def test_guid_prefers_native_id():
    item = normalize({'id': 'guid-123', 'link': 'https://x/123'}, now=NOW)
    assert item['guid'] == 'guid-123'
    assert item['url'] == 'https://x/123'


def test_guid_falls_back_to_link():
    assert normalize({'id': '', 'link': 'https://x/123'}, now=NOW)['guid'] == 'https://x/123'
    assert normalize({'link': 'https://x/456'}, now=NOW)['guid'] == 'https://x/456'


def test_entry_without_id_and_link_is_rejected():
    with pytest.raises(ItemError):
        normalize({'title': 'orphan'}, now=NOW)


def test_normalize_parsed_rss_entries():
    first, second = _parse_entries(RSS_TWO_ITEMS)

    item = normalize(first, now=NOW)
    assert item['guid'] == 'guid-1'
    assert item['title'] == 'First'
    assert item['description'] == 'Hello world'
    assert item['published_at'] == datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)

    item = normalize(second, now=NOW)
    assert item['guid'] == 'https://example.com/2'
    assert item['published_at'] == NOW


def test_published_time_falls_back_to_updated():
    updated = datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
    item = normalize({'id': 'x', 'updated_parsed': updated.timetuple()}, now=NOW)
    assert item['published_at'] == updated


def test_cleaned_summary_has_no_markup_or_double_spaces():
    summary = '<div>\n  <p>Line   one</p>\t<p>line <a href="#">two</a></p> 3 > 2 </div>'
    description = normalize({'id': 'x', 'summary': summary}, now=NOW)['description']
    assert '<' not in description
    assert '>' not in description
    assert '  ' not in description
    assert description == 'Line one line two 3 2'


def test_author_name():
    assert normalize({'id': 'x', 'author_detail': {'name': 'Alice', 'email': 'a@x'}}, now=NOW)['author'] == 'Alice'
    assert normalize({'id': 'x', 'author': 'Bob'}, now=NOW)['author'] == 'Bob'
    assert normalize({'id': 'x'}, now=NOW)['author'] == ''


def test_explicit_image_wins_over_content_img():
    entry = {
        'id': 'x',
        'image': {'href': 'https://img/explicit.png'},
        'content': [{'value': '<p><img src="https://img/content.png"></p>'}],
    }
    assert normalize(entry, now=NOW)['image_url'] == 'https://img/explicit.png'


def test_image_priority_chain():
    entry = {
        'id': 'x',
        'enclosures': [
            {'href': 'https://cdn/audio.mp3', 'type': 'audio/mpeg'},
            {'href': 'https://cdn/cover.jpg', 'type': 'image/jpeg'},
        ],
        'content': [{'value': '<img src="https://img/content.png">'}],
        'summary': '<img src="https://img/summary.png">',
    }
    assert normalize(entry, now=NOW)['image_url'] == 'https://cdn/cover.jpg'

    del entry['enclosures']
    assert normalize(entry, now=NOW)['image_url'] == 'https://img/content.png'

    del entry['content']
    assert normalize(entry, now=NOW)['image_url'] == 'https://img/summary.png'

    del entry['summary']
    assert normalize(entry, now=NOW)['image_url'] == ''


def test_image_from_parsed_enclosure():
    xml = '''<?xml version="1.0"?>
    <rss version="2.0"><channel><title>t</title>
      <item>
        <guid>e1</guid>
        <enclosure url="https://cdn/pic.png" length="1" type="image/png"/>
      </item>
    </channel></rss>'''
    entry, = _parse_entries(xml)
    assert normalize(entry, now=NOW)['image_url'] == 'https://cdn/pic.png'

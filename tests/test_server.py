# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import threading
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from feedpoller import core, discovery, server
from feedpoller.cfg import ConfigHelper
from feedpoller.server import create_app
from feedpoller.settings import Settings


@pytest.fixture
def fetched(monkeypatch):
    '''
    Replace the network fetch, record which feeds were fetched.
    '''
    calls: list[tuple[int, str]] = []
    done = threading.Event()

    def fake_fetch(open_store, feed_id, url, **kwargs):
        with open_store() as store:
            store.insert_item_if_absent(feed_id, {
                'guid': f'{url}#1',
                'title': 'Hello',
                'url': url + '/1',
                'description': 'hello',
                'content': '',
                'author': '',
                'published_at': datetime(2025, 1, 1, tzinfo=timezone.utc),
                'image_url': '',
            })
            store.update_feed_fetch_result(feed_id, datetime.now(timezone.utc), None)
            store.commit()
        calls.append((feed_id, url))
        done.set()

    monkeypatch.setattr(core, 'fetch_feed', fake_fetch)
    return calls, done


@pytest.fixture
def client(tmp_path, fetched):
    helper = ConfigHelper(Settings(database=str(tmp_path / 'api.sqlite3'), fetch_interval=3600))
    with TestClient(create_app(helper)) as client:
        yield client


def _create_feed(client, url='https://example.com/rss.xml', **kwargs) -> dict:
    r = client.post('/api/feeds', json={'url': url, **kwargs})
    assert r.status_code == 201
    return r.json()


def test_health(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.text == 'OK'


def test_create_feed_triggers_fetch(client, fetched):
    calls, done = fetched
    feed = _create_feed(client)
    assert feed['title'] == 'New Feed'
    assert feed['fetch_interval'] == 1800

    assert done.wait(5)
    assert calls == [(feed['id'], 'https://example.com/rss.xml')]


def test_create_feed_requires_unique_url(client):
    _create_feed(client)
    assert client.post('/api/feeds', json={'url': 'https://example.com/rss.xml'}).status_code == 409
    assert client.post('/api/feeds', json={'url': '  '}).status_code == 400


def test_feed_crud(client):
    feed = _create_feed(client, title='Mine')
    assert client.get(f'/api/feeds/{feed["id"]}').json()['title'] == 'Mine'
    assert [x['id'] for x in client.get('/api/feeds').json()] == [feed['id']]

    r = client.put(f'/api/feeds/{feed["id"]}', json={
        'url': feed['url'], 'title': 'Renamed', 'fetch_interval': 600,
    })
    assert r.status_code == 200
    assert r.json()['title'] == 'Renamed'
    assert r.json()['fetch_interval'] == 600

    assert client.delete(f'/api/feeds/{feed["id"]}').status_code == 204
    assert client.get(f'/api/feeds/{feed["id"]}').status_code == 404
    assert client.put('/api/feeds/999', json={'url': 'https://x/'}).status_code == 404


def test_refresh_feed(client, fetched):
    calls, done = fetched
    feed = _create_feed(client)
    assert done.wait(5)
    done.clear()

    r = client.post(f'/api/feeds/{feed["id"]}/refresh')
    assert r.status_code == 202
    assert r.json() == {'status': 'refresh started'}
    assert done.wait(5)
    assert len(calls) == 2

    assert client.post('/api/feeds/999/refresh').status_code == 404


def test_articles(client, fetched):
    _, done = fetched
    feed = _create_feed(client)
    assert done.wait(5)

    articles = client.get('/api/articles', params={'feed_id': feed['id']}).json()
    assert len(articles) == 1
    article = articles[0]
    assert article['feed_title'] == 'New Feed'
    assert article['is_read'] is False

    assert client.put(f'/api/articles/{article["id"]}/read', json={'is_read': True}).status_code == 200
    assert client.put(f'/api/articles/{article["id"]}/star', json={'is_starred': True}).status_code == 200
    article = client.get(f'/api/articles/{article["id"]}').json()
    assert article['is_read'] is True
    assert article['is_starred'] is True

    assert client.get('/api/articles', params={'unread': True}).json() == []
    assert client.get('/api/stats').json() == {'total_feeds': 1, 'total_articles': 1, 'unread_count': 0}

    assert client.put(f'/api/articles/{article["id"]}/read', json={'is_read': False}).status_code == 200
    assert client.post('/api/articles/mark-all-read').json() == {'count': 1}
    assert client.get('/api/articles/999').status_code == 404


def test_discover(client, monkeypatch):
    def fake_discover(url):
        return [{'url': 'https://blog.example/feed', 'title': '', 'type': 'unknown'}]

    monkeypatch.setattr(discovery, 'discover', fake_discover)
    r = client.get('/api/discover', params={'url': 'blog.example'})
    assert r.status_code == 200
    assert r.json() == [{'url': 'https://blog.example/feed', 'title': '', 'type': 'unknown'}]


def test_discover_invalid_url(client):
    assert client.get('/api/discover', params={'url': 'ftp://x'}).status_code == 400


def test_serve_runs_uvicorn_with_settings(monkeypatch):
    started = []

    class FakeServer:
        def __init__(self, config):
            self.config = config

        def run(self):
            started.append(self.config)

    monkeypatch.setenv('FEEDPOLLER_HOST', '0.0.0.0')
    monkeypatch.setenv('FEEDPOLLER_PORT', '9000')
    monkeypatch.setattr(server.uvicorn, 'Server', FakeServer)
    server.serve()

    config, = started
    assert config.app is server.app
    assert config.host == '0.0.0.0'
    assert config.port == 9000

# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import sqlite3
from datetime import datetime

from ._utils import utcnow
from .models import ArticleRowRecord, FeedRowRecord, ItemRecord, StoreStats


DEFAULT_FETCH_INTERVAL = 1800


def _to_db_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None

def _from_db_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class FeedStore:
    FEEDS_TABLE_NAME = 'feeds'
    ARTICLES_TABLE_NAME = 'articles'

    FEED_COLUMN_NAMES = (
        'id', 'title', 'url', 'site_url', 'description', 'fetch_interval',
        'last_fetched', 'last_error', 'created_at', 'updated_at',
    )

    ARTICLE_COLUMN_NAMES = (
        'id', 'feed_id', 'guid', 'title', 'url', 'description', 'content', 'author',
        'published_at', 'fetched_at', 'is_read', 'is_starred', 'image_url',
    )


class SqliteFeedStore(FeedStore):
    def __init__(self, conn_str: str) -> None:
        self.__conn_str = conn_str
        self.__conn: sqlite3.Connection | None = None
        self.__cur: sqlite3.Cursor | None = None

    def __enter__(self):
        conn = sqlite3.connect(self.__conn_str, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        if self.__conn_str != ':memory:':
            conn.execute('PRAGMA journal_mode=WAL')
            conn.execute('PRAGMA synchronous=NORMAL')
        conn.execute('PRAGMA foreign_keys=ON')
        self.__conn = conn
        self.__cur = conn.cursor()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if cur := self.__cur:
            cur.close()
        self.__cur = None

        if conn := self.__conn:
            conn.close()
        self.__conn = None

    @property
    def _conn(self):
        if conn := self.__conn:
            return conn
        # If connection is not initialized, raise an error
        raise RuntimeError("Connection is not initialized")

    @property
    def _cur(self):
        if cur := self.__cur:
            return cur
        # If cursor is not initialized, raise an error
        raise RuntimeError("Cursor is not initialized")

    def init_store(self):
        self._cur.executescript(f'''
            CREATE TABLE IF NOT EXISTS {self.FEEDS_TABLE_NAME} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                url TEXT UNIQUE NOT NULL,
                site_url TEXT,
                description TEXT,
                fetch_interval INTEGER DEFAULT {DEFAULT_FETCH_INTERVAL},
                last_fetched TEXT,
                last_error TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS {self.ARTICLES_TABLE_NAME} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                feed_id INTEGER NOT NULL,
                guid TEXT UNIQUE NOT NULL,
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                description TEXT,
                content TEXT,
                author TEXT,
                published_at TEXT NOT NULL,
                fetched_at TEXT NOT NULL,
                is_read BOOLEAN DEFAULT FALSE,
                is_starred BOOLEAN DEFAULT FALSE,
                image_url TEXT,
                FOREIGN KEY (feed_id) REFERENCES {self.FEEDS_TABLE_NAME}(id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_articles_feed_id ON {self.ARTICLES_TABLE_NAME}(feed_id);
            CREATE INDEX IF NOT EXISTS idx_articles_published_at ON {self.ARTICLES_TABLE_NAME}(published_at DESC);
            CREATE INDEX IF NOT EXISTS idx_articles_is_read ON {self.ARTICLES_TABLE_NAME}(is_read);
        ''')

    def commit(self):
        self._conn.commit()

    # feeds

    def _row_to_feed(self, row: sqlite3.Row) -> FeedRowRecord:
        feed = dict(row)
        for key in ('last_fetched', 'created_at', 'updated_at'):
            feed[key] = _from_db_time(feed[key])
        return feed # type: ignore

    def list_feeds(self) -> list[FeedRowRecord]:
        sql = 'SELECT {} FROM {} ORDER BY id'.format(', '.join(self.FEED_COLUMN_NAMES), self.FEEDS_TABLE_NAME)
        return [self._row_to_feed(x) for x in self._cur.execute(sql).fetchall()]

    def get_feed(self, feed_id: int) -> FeedRowRecord | None:
        sql = 'SELECT {} FROM {} WHERE id = ?'.format(', '.join(self.FEED_COLUMN_NAMES), self.FEEDS_TABLE_NAME)
        if row := self._cur.execute(sql, (feed_id, )).fetchone():
            return self._row_to_feed(row)
        return None

    def get_feed_by_url(self, url: str) -> FeedRowRecord | None:
        sql = 'SELECT {} FROM {} WHERE url = ?'.format(', '.join(self.FEED_COLUMN_NAMES), self.FEEDS_TABLE_NAME)
        if row := self._cur.execute(sql, (url, )).fetchone():
            return self._row_to_feed(row)
        return None

    def add_feed(self, url: str, title: str | None = None, *,
                 site_url: str | None = None, description: str | None = None,
                 fetch_interval: int | None = None) -> int:
        '''
        Register a feed and return its id.

        Raises `sqlite3.IntegrityError` if the url is already registered.
        '''
        now = _to_db_time(utcnow())
        cur = self._cur.execute(
            'INSERT INTO {} (title, url, site_url, description, fetch_interval, created_at, updated_at)'
            ' VALUES (?, ?, ?, ?, ?, ?, ?)'.format(self.FEEDS_TABLE_NAME),
            (title or 'New Feed', url, site_url or '', description or '',
             fetch_interval or DEFAULT_FETCH_INTERVAL, now, now))
        assert cur.lastrowid is not None
        return cur.lastrowid

    def update_feed(self, feed_id: int, *, title: str, url: str, site_url: str | None,
                    description: str | None, fetch_interval: int) -> bool:
        cur = self._cur.execute(
            'UPDATE {} SET title = ?, url = ?, site_url = ?, description = ?, fetch_interval = ?, updated_at = ?'
            ' WHERE id = ?'.format(self.FEEDS_TABLE_NAME),
            (title, url, site_url or '', description or '', fetch_interval, _to_db_time(utcnow()), feed_id))
        return cur.rowcount > 0

    def delete_feed(self, feed_id: int) -> bool:
        cur = self._cur.execute('DELETE FROM {} WHERE id = ?'.format(self.FEEDS_TABLE_NAME), (feed_id, ))
        return cur.rowcount > 0

    def update_feed_metadata(self, feed_id: int, title: str, description: str | None, site_url: str | None):
        self._cur.execute(
            'UPDATE {} SET title = ?, description = ?, site_url = ?, updated_at = ? WHERE id = ?'
            .format(self.FEEDS_TABLE_NAME),
            (title, description or '', site_url or '', _to_db_time(utcnow()), feed_id))

    def update_feed_fetch_result(self, feed_id: int, fetched_at: datetime | None, error: str | None):
        '''
        Record the outcome of a fetch.

        `last_fetched` is only written when `fetched_at` is given, so a failed
        attempt keeps the time of the last success.
        '''
        if fetched_at is not None:
            self._cur.execute(
                'UPDATE {} SET last_fetched = ?, last_error = ? WHERE id = ?'.format(self.FEEDS_TABLE_NAME),
                (_to_db_time(fetched_at), error, feed_id))
        else:
            self._cur.execute(
                'UPDATE {} SET last_error = ? WHERE id = ?'.format(self.FEEDS_TABLE_NAME),
                (error, feed_id))

    # articles

    def insert_item_if_absent(self, feed_id: int, item: ItemRecord) -> bool:
        '''
        Return True if inserted, False if an item with the same guid already exists.
        '''
        cur = self._cur.execute(
            'INSERT OR IGNORE INTO {} (feed_id, guid, title, url, description, content, author,'
            ' published_at, fetched_at, image_url) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)'
            .format(self.ARTICLES_TABLE_NAME),
            (feed_id, item['guid'], item['title'], item['url'], item['description'], item['content'],
             item['author'], _to_db_time(item['published_at']), _to_db_time(utcnow()), item['image_url']))
        return cur.rowcount > 0

    def get_count(self, feed_id: int | None = None) -> int:
        if feed_id is None:
            sql = 'SELECT COUNT(id) FROM {}'.format(self.ARTICLES_TABLE_NAME)
            return self._cur.execute(sql).fetchone()[0]
        sql = 'SELECT COUNT(id) FROM {} WHERE feed_id = ?'.format(self.ARTICLES_TABLE_NAME)
        return self._cur.execute(sql, (feed_id, )).fetchone()[0]

    def _row_to_article(self, row: sqlite3.Row) -> ArticleRowRecord:
        article = dict(row)
        for key in ('published_at', 'fetched_at'):
            article[key] = _from_db_time(article[key])
        for key in ('is_read', 'is_starred'):
            article[key] = bool(article[key])
        return article # type: ignore

    def read_articles(self, limit: int, offset: int = 0, *,
                      feed_id: int | None = None, unread_only: bool = False) -> list[ArticleRowRecord]:
        columns = ', '.join('a.' + x for x in self.ARTICLE_COLUMN_NAMES)
        sql = 'SELECT {}, f.title AS feed_title FROM {} a JOIN {} f ON a.feed_id = f.id WHERE 1=1'.format(
            columns, self.ARTICLES_TABLE_NAME, self.FEEDS_TABLE_NAME)
        args: list[object] = []
        if feed_id is not None:
            sql += ' AND a.feed_id = ?'
            args.append(feed_id)
        if unread_only:
            sql += ' AND a.is_read = 0'
        sql += ' ORDER BY a.published_at DESC, a.id DESC LIMIT ? OFFSET ?'
        args.extend((limit, offset))
        return [self._row_to_article(x) for x in self._cur.execute(sql, args).fetchall()]

    def get_article(self, article_id: int) -> ArticleRowRecord | None:
        columns = ', '.join('a.' + x for x in self.ARTICLE_COLUMN_NAMES)
        sql = 'SELECT {}, f.title AS feed_title FROM {} a JOIN {} f ON a.feed_id = f.id WHERE a.id = ?'.format(
            columns, self.ARTICLES_TABLE_NAME, self.FEEDS_TABLE_NAME)
        if row := self._cur.execute(sql, (article_id, )).fetchone():
            return self._row_to_article(row)
        return None

    def set_read(self, article_id: int, is_read: bool) -> bool:
        cur = self._cur.execute(
            'UPDATE {} SET is_read = ? WHERE id = ?'.format(self.ARTICLES_TABLE_NAME), (is_read, article_id))
        return cur.rowcount > 0

    def set_starred(self, article_id: int, is_starred: bool) -> bool:
        cur = self._cur.execute(
            'UPDATE {} SET is_starred = ? WHERE id = ?'.format(self.ARTICLES_TABLE_NAME), (is_starred, article_id))
        return cur.rowcount > 0

    def mark_all_read(self, feed_id: int | None = None) -> int:
        if feed_id is None:
            cur = self._cur.execute('UPDATE {} SET is_read = 1 WHERE is_read = 0'.format(self.ARTICLES_TABLE_NAME))
        else:
            cur = self._cur.execute(
                'UPDATE {} SET is_read = 1 WHERE is_read = 0 AND feed_id = ?'.format(self.ARTICLES_TABLE_NAME),
                (feed_id, ))
        return cur.rowcount

    def get_stats(self) -> StoreStats:
        return {
            'total_feeds': self._cur.execute('SELECT COUNT(id) FROM {}'.format(self.FEEDS_TABLE_NAME)).fetchone()[0],
            'total_articles': self.get_count(),
            'unread_count': self._cur.execute(
                'SELECT COUNT(id) FROM {} WHERE is_read = 0'.format(self.ARTICLES_TABLE_NAME)).fetchone()[0],
        }


def open_store(conn_str: str):
    return SqliteFeedStore(conn_str)

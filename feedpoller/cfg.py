# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import os
import sqlite3
from contextlib import suppress
from logging import getLogger
from typing import Dict, Iterable, NotRequired, Optional, Tuple

from typing_extensions import TypedDict

import yaml
from cachetools import cachedmethod

from .settings import Settings
from .stores import DEFAULT_FETCH_INTERVAL, SqliteFeedStore, open_store

logger = getLogger(__name__)

DEFAULT_DATABASE = 'feedpoller.sqlite3'
DEFAULT_MAX_WORKERS = 8


class ConfigError(Exception):
    pass


class FeedSection(TypedDict):
    url: str
    title: NotRequired[str]


class OptionsSection(TypedDict):
    fetch_interval: NotRequired[int]
    max_workers: NotRequired[int]
    timeout: NotRequired[float]


class RootSection(TypedDict):
    database: Optional[str]
    options: Optional[OptionsSection]
    feeds: Optional[Dict[str, FeedSection]]


class Config:
    def __init__(self, config_data: RootSection, *, mtime_ns: int, settings: Settings | None = None) -> None:
        self.config_data: RootSection = config_data
        self.mtime_ns = mtime_ns
        self.settings = settings or Settings(config=None)
        self._cache = {}

    def _get_options(self) -> OptionsSection:
        return self.config_data.get('options') or {}

    def get_conn_str(self) -> str:
        return self.settings.database or self.config_data.get('database') or DEFAULT_DATABASE

    def get_fetch_interval(self) -> int:
        interval = self.settings.fetch_interval or self._get_options().get('fetch_interval')
        if isinstance(interval, int) and interval > 0:
            return interval
        return DEFAULT_FETCH_INTERVAL

    def get_max_workers(self) -> int:
        max_workers = self._get_options().get('max_workers')
        if isinstance(max_workers, int) and max_workers > 0:
            return max_workers
        return DEFAULT_MAX_WORKERS

    def get_timeout(self) -> float | None:
        timeout = self._get_options().get('timeout')
        if isinstance(timeout, (int, float)) and timeout > 0:
            return timeout
        return None

    def open_store(self) -> SqliteFeedStore:
        return open_store(self.get_conn_str())

    @cachedmethod(cache=lambda x: x._cache)
    def init_store(self) -> None:
        '''
        This method is cached so it is safe to call multi times.
        '''
        logger.info('Init store at %s', self.get_conn_str())
        with self.open_store() as store:
            store.init_store()
            store.commit()

    def iter_feeds(self) -> Iterable[Tuple[str, FeedSection]]:
        if feeds := self.config_data.get('feeds'):
            for name, feed_section in feeds.items():
                if isinstance(feed_section, str):
                    feed_section = {'url': feed_section}
                if feed_section.get('url'):
                    yield name, feed_section

    def seed_feeds(self) -> int:
        '''
        Register the feeds listed in config which are not in the store yet.

        Returns the number of registered feeds.
        '''
        added = 0
        with self.open_store() as store:
            for name, feed_section in self.iter_feeds():
                if store.get_feed_by_url(feed_section['url']) is None:
                    with suppress(sqlite3.IntegrityError):
                        store.add_feed(feed_section['url'], feed_section.get('title') or name)
                        added += 1
                        logger.info('Register feed %s from config.', name)
            store.commit()
        return added


class ConfigHelper:
    def __init__(self, settings: Settings) -> None:
        self.__settings = settings
        self.__config: Config | None = None

    @property
    def config_path(self) -> str | None:
        return self.__settings.config

    def open_store(self) -> SqliteFeedStore:
        return self.get_config().open_store()

    def _load_config(self, path: str | None) -> Config | None:
        if path is None:
            return Config({'database': None, 'options': None, 'feeds': None}, mtime_ns=-1, settings=self.__settings)

        config_content: RootSection | None = None
        mtime_ns = -1

        if os.path.isfile(path):
            with suppress(FileNotFoundError):
                with open(path, mode='r', encoding='utf8') as fp:
                    config_content = yaml.safe_load(fp) or {}
                    mtime_ns = os.stat(fp.fileno()).st_mtime_ns
                    logger.info('Load config from %s', path)
            if config_content is None:
                logger.warning('Unable open file: %s', path)
        else:
            logger.warning('No such file: %s', path)

        if config_content is not None:
            if not isinstance(config_content, dict):
                raise ConfigError(f'Invalid config file: {path}')
            return Config(config_content, mtime_ns=mtime_ns, settings=self.__settings)

    def reload_config(self) -> bool:
        config_path = self.config_path

        if (config := self._load_config(config_path)) is not None:
            is_store_updated = self.__config is None or self.__config.get_conn_str() != config.get_conn_str()
            self.__config = config
            logger.info('Database: %s', config.get_conn_str())
            if is_store_updated:
                config.init_store()
            else:
                logger.info('Database connect string not changed, skip init.')
            config.seed_feeds()
            return True

        return False

    def reload_config_if_updated(self) -> bool:
        '''
        Return True if updated and reloaded.
        '''
        config_path = self.config_path
        if config_path is None:
            return False

        with suppress(FileNotFoundError):
            mtime_ns = os.stat(config_path).st_mtime_ns
            if mtime_ns != self.get_config().mtime_ns:
                logger.info('Config file (%s) is updated, try reload...', config_path)
                if self.reload_config():
                    logger.info('Reload completed')
                    return True
                else:
                    logger.warning('Reload failed')

        return False

    def get_config(self) -> Config:
        '''
        Get config snapshot.
        '''
        if self.__config is None:
            if not self.reload_config():
                raise ConfigError('Unable load config')
            assert self.__config is not None

        return self.__config

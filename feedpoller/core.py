# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import logging
import sqlite3
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from pydantic import ValidationError
from schedule import Scheduler

from ._utils import get_logger
from .cfg import DEFAULT_MAX_WORKERS, ConfigHelper
from .errors import FetchError
from .fetcher import StoreOpener, fetch_feed
from .settings import Settings, load_settings
from .stores import DEFAULT_FETCH_INTERVAL

# grace period for the serving endpoint to become ready
STARTUP_DELAY = 5


class FeedScheduler:
    '''
    Poll every registered feed on a fixed interval.

    Each tick submits one fetch per feed to a bounded thread pool and returns
    without waiting for them; a feed still queued or running from an earlier
    tick is not queued twice.
    '''

    def __init__(self, open_store: StoreOpener, interval: int = DEFAULT_FETCH_INTERVAL, *,
                 max_workers: int = DEFAULT_MAX_WORKERS,
                 startup_delay: float = STARTUP_DELAY,
                 fetch_options: dict[str, Any] | None = None,
                 before_tick: Callable[[], Any] | None = None,
                 stop_event: threading.Event | None = None) -> None:
        self._open_store = open_store
        self._interval = interval
        self._startup_delay = startup_delay
        self._fetch_options = fetch_options or {}
        self._before_tick = before_tick
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='feedpoller-fetch')
        # manual refreshes never queue behind scheduled fetches
        self._refresh_executor = ThreadPoolExecutor(thread_name_prefix='feedpoller-refresh')
        self._scheduler = Scheduler()
        self._stop_event = stop_event or threading.Event()
        self._pending: set[int] = set()
        self._pending_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def is_stopped(self) -> bool:
        return self._stop_event.is_set()

    def _fetch_job(self, feed_id: int, url: str) -> None:
        try:
            fetch_feed(self._open_store, feed_id, url, **self._fetch_options)
        except FetchError:
            pass # logged and recorded on the feed by fetch_feed
        except Exception as error:
            get_logger().error('fetch %r failure with %s', feed_id, error, exc_info=True)

    def refresh(self, feed_id: int, url: str) -> Future[None]:
        '''
        Fetch one feed now, independent of the scheduled ticks.
        '''
        return self._refresh_executor.submit(self._fetch_job, feed_id, url)

    def _submit_scheduled(self, feed_id: int, url: str) -> Future[None] | None:
        with self._pending_lock:
            if feed_id in self._pending:
                return None
            self._pending.add(feed_id)

        def job() -> None:
            try:
                self._fetch_job(feed_id, url)
            finally:
                with self._pending_lock:
                    self._pending.discard(feed_id)

        try:
            return self._executor.submit(job)
        except RuntimeError:
            # executor is shut down
            with self._pending_lock:
                self._pending.discard(feed_id)
            return None

    def tick(self) -> list[Future[None]]:
        logger = get_logger()

        if self._before_tick is not None:
            try:
                self._before_tick()
            except Exception as error:
                logger.error('before tick failure with %s', error, exc_info=True)

        logger.info('Starting feed fetch cycle...')
        try:
            with self._open_store() as store:
                feeds = store.list_feeds()
        except sqlite3.Error as error:
            logger.error('list feeds failure with %s', error)
            return []

        if not feeds:
            logger.info('No feeds to fetch')
            return []

        futures = []
        for feed in feeds:
            if self.is_stopped:
                break
            if (future := self._submit_scheduled(feed['id'], feed['url'])) is not None:
                futures.append(future)
            else:
                logger.info('Feed %s is still being fetched, skip.', feed['id'])
        logger.info('Dispatched %d of %d feeds.', len(futures), len(feeds))
        return futures

    def run_forever(self) -> None:
        logger = get_logger()
        logger.info('Feed scheduler started (interval: %d seconds)', self._interval)

        if self._stop_event.wait(self._startup_delay):
            return

        self.tick()
        self._scheduler.every(self._interval).seconds.do(self.tick)

        while not self._stop_event.is_set():
            self._scheduler.run_pending()
            idle_seconds = self._scheduler.idle_seconds
            self._stop_event.wait(min(max(idle_seconds or 0, 0.1), 1))

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run_forever, name='feedpoller-scheduler', daemon=True)
        self._thread.start()

    def shutdown(self, wait: bool = True) -> None:
        get_logger().info('Shutting down FeedScheduler...')
        self._stop_event.set()
        self._scheduler.clear()
        if (thread := self._thread) is not None and thread is not threading.current_thread():
            thread.join()
        self._executor.shutdown(wait=wait, cancel_futures=True)
        self._refresh_executor.shutdown(wait=wait, cancel_futures=True)


def start_scheduler(open_store: StoreOpener, interval: int = DEFAULT_FETCH_INTERVAL, *,
                    stop_event: threading.Event | None = None, **kwargs) -> None:
    '''
    Run the scheduler in the current thread until `stop_event` is set or interrupted.
    '''
    scheduler = FeedScheduler(open_store, interval, stop_event=stop_event, **kwargs)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.shutdown()


def create_scheduler(config_helper: ConfigHelper, **kwargs) -> FeedScheduler:
    config = config_helper.get_config()
    fetch_options = {}
    if (timeout := config.get_timeout()) is not None:
        fetch_options['timeout'] = timeout
    return FeedScheduler(
        config_helper.open_store,
        config.get_fetch_interval(),
        max_workers=config.get_max_workers(),
        fetch_options=fetch_options,
        **kwargs)


def fetch_feeds(config_helper: ConfigHelper) -> None:
    '''
    Fetch all registered feeds once and wait for them.
    '''
    scheduler = create_scheduler(config_helper, startup_delay=0)
    try:
        futures = scheduler.tick()
        wait(futures)
    finally:
        scheduler.shutdown()

    with config_helper.open_store() as store:
        get_logger().info('total %s articles in store', store.get_count())


def configure_logger() -> None:
    logging.basicConfig(
        format='%(asctime)s [%(levelname)s] - %(name)s: %(message)s',
        datefmt='%m/%d/%Y %I:%M:%S %p',
        level=logging.INFO
    )
    get_logger().setLevel(logging.INFO)


def load_config_helper() -> ConfigHelper:
    def _load_settings() -> Settings:
        try:
            return load_settings()
        except ValidationError as e:
            get_logger().error(e)
            exit(1)

    settings = _load_settings()
    config_helper = ConfigHelper(settings)
    return config_helper

# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import sqlite3
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from typing import Annotated, cast

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from pydantic import BaseModel
import uvicorn

from . import discovery
from .cfg import Config, ConfigHelper
from .core import FeedScheduler, configure_logger, create_scheduler, load_config_helper
from .errors import InvalidURLError
from .models import ArticleRowRecord, FeedCandidate, FeedRowRecord, StoreStats
from .settings import load_settings
from .stores import DEFAULT_FETCH_INTERVAL, SqliteFeedStore


def _get_config_from_request(request: Request) -> Config:
    config_helper = cast(ConfigHelper, request.app.state.config_helper)
    return config_helper.get_config()

ConfigDeps = Annotated[Config, Depends(_get_config_from_request)]

def _open_store(config: ConfigDeps) -> Iterator[SqliteFeedStore]:
    with config.open_store() as store:
        yield store

StoreDeps = Annotated[SqliteFeedStore, Depends(_open_store, use_cache=False)]

def _get_scheduler_from_request(request: Request) -> FeedScheduler:
    return cast(FeedScheduler, request.app.state.scheduler)

SchedulerDeps = Annotated[FeedScheduler, Depends(_get_scheduler_from_request)]


class FeedBody(BaseModel):
    url: str
    title: str = ''
    site_url: str = ''
    description: str = ''
    fetch_interval: int = DEFAULT_FETCH_INTERVAL


class ReadBody(BaseModel):
    is_read: bool


class StarBody(BaseModel):
    is_starred: bool


class MarkAllReadBody(BaseModel):
    feed_id: int | None = None


def _get_feed_or_404(store: SqliteFeedStore, feed_id: int) -> FeedRowRecord:
    if (feed := store.get_feed(feed_id)) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Feed not found')
    return feed


router = APIRouter(prefix='/api')


@router.get('/feeds')
def list_feeds(store: StoreDeps) -> list[FeedRowRecord]:
    return store.list_feeds()


@router.post('/feeds', status_code=status.HTTP_201_CREATED)
def create_feed(body: FeedBody, store: StoreDeps, scheduler: SchedulerDeps) -> FeedRowRecord:
    if not body.url.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Feed URL is required')
    try:
        feed_id = store.add_feed(body.url.strip(), body.title,
            site_url=body.site_url, description=body.description, fetch_interval=body.fetch_interval)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail='Feed already exists')
    store.commit()

    feed = _get_feed_or_404(store, feed_id)
    # populate articles in background
    scheduler.refresh(feed_id, feed['url'])
    return feed


@router.get('/feeds/{feed_id}')
def get_feed(feed_id: int, store: StoreDeps) -> FeedRowRecord:
    return _get_feed_or_404(store, feed_id)


@router.put('/feeds/{feed_id}')
def update_feed(feed_id: int, body: FeedBody, store: StoreDeps) -> FeedRowRecord:
    try:
        updated = store.update_feed(feed_id, title=body.title, url=body.url, site_url=body.site_url,
            description=body.description, fetch_interval=body.fetch_interval)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail='Feed already exists')
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Feed not found')
    store.commit()
    return _get_feed_or_404(store, feed_id)


@router.delete('/feeds/{feed_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_feed(feed_id: int, store: StoreDeps) -> Response:
    store.delete_feed(feed_id)
    store.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post('/feeds/{feed_id}/refresh', status_code=status.HTTP_202_ACCEPTED)
def refresh_feed(feed_id: int, store: StoreDeps, scheduler: SchedulerDeps) -> dict:
    feed = _get_feed_or_404(store, feed_id)
    scheduler.refresh(feed_id, feed['url'])
    return {'status': 'refresh started'}


@router.get('/discover')
def discover_feeds(url: str) -> list[FeedCandidate]:
    try:
        return discovery.discover(url)
    except InvalidURLError as error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


@router.get('/articles')
def list_articles(
    store: StoreDeps,
    limit: int = 20, offset: int = 0,
    feed_id: int | None = None, unread: bool = False,
) -> list[ArticleRowRecord]:
    if limit <= 0 or limit > 100:
        limit = 20
    return store.read_articles(limit, max(offset, 0), feed_id=feed_id, unread_only=unread)


@router.get('/articles/{article_id}')
def get_article(article_id: int, store: StoreDeps) -> ArticleRowRecord:
    if (article := store.get_article(article_id)) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Article not found')
    return article


@router.put('/articles/{article_id}/read')
def mark_read(article_id: int, body: ReadBody, store: StoreDeps) -> Response:
    if not store.set_read(article_id, body.is_read):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Article not found')
    store.commit()
    return Response(status_code=status.HTTP_200_OK)


@router.put('/articles/{article_id}/star')
def mark_starred(article_id: int, body: StarBody, store: StoreDeps) -> Response:
    if not store.set_starred(article_id, body.is_starred):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Article not found')
    store.commit()
    return Response(status_code=status.HTTP_200_OK)


@router.post('/articles/mark-all-read')
def mark_all_read(store: StoreDeps, body: MarkAllReadBody | None = None) -> dict:
    count = store.mark_all_read(body.feed_id if body else None)
    store.commit()
    return {'count': count}


@router.get('/stats')
def get_stats(store: StoreDeps) -> StoreStats:
    return store.get_stats()


def create_app(config_helper: ConfigHelper | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logger()

        helper = config_helper or load_config_helper()
        helper.get_config()
        app.state.config_helper = helper

        scheduler = create_scheduler(helper, before_tick=helper.reload_config_if_updated)
        app.state.scheduler = scheduler

        scheduler.start()
        try:
            yield
        finally:
            scheduler.shutdown()

    app = FastAPI(
        lifespan=lifespan,
    )
    app.include_router(router)

    @app.head('/health')
    @app.get('/health')
    def health() -> Response:
        return Response(content='OK', status_code=200)

    return app

app = create_app()

def serve() -> None:
    settings = load_settings()
    config = uvicorn.Config(app, host=settings.host, port=settings.port, log_level='info')
    server = uvicorn.Server(config)
    server.run()

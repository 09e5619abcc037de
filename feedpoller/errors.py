# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------


class FeedPollerError(Exception):
    pass


class FetchError(FeedPollerError):
    '''
    A whole feed could not be fetched or parsed.

    `str(error)` is the message recorded as the feed's last error.
    '''

    def __init__(self, message: str, *, feed_id: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.feed_id = feed_id
        self.url = url


class TransportError(FetchError):
    pass


class ParseError(FetchError):
    pass


class ItemError(FeedPollerError):
    pass


class InvalidURLError(FeedPollerError, ValueError):
    pass

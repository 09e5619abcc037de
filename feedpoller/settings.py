# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        'env_prefix': 'FEEDPOLLER_',
    }

    config: str | None = None
    database: str | None = None
    fetch_interval: int | None = None
    host: str = '127.0.0.1'
    port: int = 8080

def load_settings() -> Settings:
    return Settings()

# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import sys

from .core import configure_logger, fetch_feeds, load_config_helper

def fetch_once(argv = sys.argv):
    configure_logger()
    config_helper = load_config_helper()
    try:
        fetch_feeds(config_helper)
    except KeyboardInterrupt:
        print('User cancel.')
        return 1

if __name__ == '__main__':
    exit(fetch_once() or 0)

# -*- coding: utf-8 -*-
"""日志模块。"""
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str = "backend", level: int = None) -> logging.Logger:
    """返回带 stdout handler 的 logger；level 未指定时读取 LOG_LEVEL（默认 INFO）。"""
    logger = logging.getLogger(name)
    if not logger.handlers:
        if level is None:
            level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
            if not isinstance(level, int):
                level = logging.INFO
        logger.setLevel(level)
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(h)
    return logger

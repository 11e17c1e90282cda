# -*- coding: utf-8 -*-
from .llm_client import generate, get_model_config
from .logger import get_logger

__all__ = ["generate", "get_model_config", "get_logger"]

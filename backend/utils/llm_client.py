# -*- coding: utf-8 -*-
"""
统一文本生成调用：OpenAI 兼容接口（Gemini / OpenAI / DeepSeek）。
对外只暴露 generate(prompt, max_retries, strict_format)：
- 瞬时故障（超时、连接失败、5xx）按指数退避重试；
- 503 过载时在同一轮内尝试一次备用模型；
- 429 立即抛出 QuotaExceededError，调用方可据此返回 429；
- 重试耗尽抛出 GenerationError。
"""
import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import openai
from openai import AsyncOpenAI

from backend.services.errors import GenerationError, QuotaExceededError

logger = logging.getLogger(__name__)

# ---------- 模型配置 ----------

PROVIDER_CONFIG = {
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
        "key_env": "GEMINI_API_KEY",
        "models": {
            "gemini-2.5-flash": "默认：章节分析、一致性检查",
            "gemini-2.0-flash": "备用：主模型过载时降级",
        },
    },
    "deepseek": {
        "base_url": "https://api.deepseek.com",
        "key_env": "DEEPSEEK_API_KEY",
        "models": {
            "deepseek-chat": "通用对话",
            "deepseek-reasoner": "推理模式",
        },
    },
    "openai": {
        "base_url": None,
        "key_env": "OPENAI_API_KEY",
        "models": {"gpt-4o": "高质量", "gpt-4o-mini": "低成本"},
    },
}

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_FALLBACK_MODEL = "gemini-2.0-flash"

# 模型 -> (provider, base_url, key_env)
_MODEL_MAP: Dict[str, Tuple[str, Optional[str], str]] = {}
for _prov, _cfg in PROVIDER_CONFIG.items():
    for _m in _cfg["models"]:
        _MODEL_MAP[_m] = (_prov, _cfg["base_url"], _cfg["key_env"])

STRICT_FORMAT_SYSTEM = "요청된 출력 형식을 정확히 따르세요. 형식 밖의 설명이나 인사말은 쓰지 마세요."


def get_model_config(model: str) -> Tuple[Optional[str], Optional[str], str]:
    """
    解析模型名 -> (base_url, api_key, model_id)。
    base_url 为 None 表示使用 OpenAI 默认；未登记的模型名按 OpenAI 模型处理。
    """
    model = (model or "").strip()
    if model in _MODEL_MAP:
        _, base_url, key_env = _MODEL_MAP[model]
        return base_url, os.getenv(key_env), model
    return os.getenv("OPENAI_BASE_URL") or None, os.getenv("OPENAI_API_KEY"), model


def _timeout() -> float:
    return float(os.getenv("GENERATION_TIMEOUT", "60"))


def _backoff_delay(attempt: int) -> float:
    """第 attempt 次失败后的等待秒数：2^attempt，封顶 GENERATION_MAX_BACKOFF。"""
    cap = float(os.getenv("GENERATION_MAX_BACKOFF", "10"))
    return min(float(2 ** attempt), cap)


def _build_messages(prompt: str, strict_format: bool) -> List[Dict[str, str]]:
    messages: List[Dict[str, str]] = []
    if strict_format:
        messages.append({"role": "system", "content": STRICT_FORMAT_SYSTEM})
    messages.append({"role": "user", "content": prompt})
    return messages


async def _call_chat(messages: List[Dict[str, str]], model: str, strict_format: bool) -> str:
    """单次调用；客户端自身不重试，由 generate 控制重试节奏。"""
    base_url, api_key, model_id = get_model_config(model)
    if not api_key:
        raise GenerationError(f"未配置模型 API Key（model={model}）")
    create_kwargs: Dict[str, Any] = {
        "model": model_id,
        "messages": messages,
        "temperature": 0.3 if strict_format else 0.8,
    }
    async with AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=_timeout(), max_retries=0) as client:
        resp = await client.chat.completions.create(**create_kwargs)
    if resp.choices:
        return (resp.choices[0].message.content or "").strip()
    return ""


def _is_overloaded(error: Exception) -> bool:
    return getattr(error, "status_code", None) == 503 or "overloaded" in str(error).lower()


async def generate(
    prompt: str,
    max_retries: int = 3,
    strict_format: bool = False,
    *,
    model: Optional[str] = None,
) -> str:
    """
    生成文本。

    :param prompt: 完整提示词
    :param max_retries: 最大尝试次数（至少 1 次）
    :param strict_format: 要求严格遵守提示词中的输出格式（降低温度并附加格式指令）
    :raises QuotaExceededError: 生成服务返回 429
    :raises GenerationError: 重试耗尽或不可重试的错误
    """
    model = model or os.getenv("GENERATION_MODEL", DEFAULT_MODEL)
    fallback = os.getenv("GENERATION_FALLBACK_MODEL", DEFAULT_FALLBACK_MODEL)
    messages = _build_messages(prompt, strict_format)
    attempts = max(1, max_retries)
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return await _call_chat(messages, model, strict_format)
        except openai.RateLimitError as e:
            logger.warning("生成额度耗尽（model=%s）: %s", model, e)
            raise QuotaExceededError("Generation quota exceeded", {"model": model}) from e
        except (openai.APITimeoutError, openai.APIConnectionError, openai.InternalServerError) as e:
            last_error = e
            logger.warning("生成第 %s/%s 次尝试失败（model=%s）: %s", attempt, attempts, model, e)
            if _is_overloaded(e) and fallback and fallback != model:
                try:
                    text = await _call_chat(messages, fallback, strict_format)
                    logger.info("已使用备用模型 %s", fallback)
                    return text
                except (openai.OpenAIError, GenerationError) as fallback_error:
                    logger.error("备用模型 %s 同样失败: %s", fallback, fallback_error)
        except openai.APIStatusError as e:
            raise GenerationError(f"Generation request rejected: {e}", {"status_code": e.status_code}) from e

        if attempt < attempts:
            delay = _backoff_delay(attempt)
            logger.info("%.1f 秒后重试", delay)
            await asyncio.sleep(delay)

    raise GenerationError(
        f"Generation failed after {attempts} attempts. Last error: {last_error}",
        {"attempts": attempts},
    )

# -*- coding: utf-8 -*-
"""
服务层异常：由路由层统一转换为 {success: false, error, details} 响应。
status_code 仅供 HTTP 层映射使用，服务层本身不关心传输协议。
"""
from typing import Any, Dict, Optional


class ServiceError(Exception):
    """服务层异常基类。"""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidInputError(ServiceError):
    """请求参数缺失或非法（请求体校验之外的查询参数等）。"""

    status_code = 400


class NotFoundError(ServiceError):
    """引用的小说/章节/情节线/角色不存在。"""

    status_code = 404


class BusinessRuleError(ServiceError):
    """违反业务规则（重名、存在引用时禁止删除等）。"""

    status_code = 400


class DuplicateNameError(BusinessRuleError):
    """同一本小说内名称重复。"""


class ReferenceConflictError(BusinessRuleError):
    """仍有章节引用，禁止删除；details 中给出各类引用计数。"""


class GenerationError(ServiceError):
    """文本生成调用失败（重试耗尽、未配置 Key 等）。"""

    status_code = 500


class QuotaExceededError(GenerationError):
    """生成服务返回 429：额度耗尽或被限流。"""

    status_code = 429

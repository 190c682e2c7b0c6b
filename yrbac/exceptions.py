"""权限引擎 - 异常定义

异常分为三类：
    - 主体不存在/已停用：不抛异常，解析结果为空权限集
    - 数据完整性异常（层级环路、自定义数据权限缺少部门列表）：记录警告，按最安全的方式降级
    - 协作存储故障：抛出 StoreUnavailableException，调用方可区分"确实无权限"与"结果未知"
"""

import copy
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from fastapi import status


class ErrorCode(str, Enum):
    """错误代码枚举
    
    继承自 str，可以直接作为字符串使用。
    """
    
    # ==================== 通用错误 ====================
    BUSINESS_ERROR = "BUSINESS_ERROR"
    
    # ==================== 授权相关 (403) ====================
    PERMISSION_DENIED = "PERMISSION_DENIED"
    ADMIN_REQUIRED = "ADMIN_REQUIRED"
    ROLE_REQUIRED = "ROLE_REQUIRED"
    DATA_SCOPE_DENIED = "DATA_SCOPE_DENIED"
    
    # ==================== 资源相关 (404) ====================
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    
    # ==================== 验证相关 (422) ====================
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    
    # ==================== 服务相关 (503) ====================
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    DATABASE_ERROR = "DATABASE_ERROR"


# 类型别名，支持枚举和字符串
ErrorCodeType = Union[str, ErrorCode]


class BusinessException(Exception):
    """业务异常基类

    属性:
        message: 错误消息（面向用户）
        code: 错误代码（支持 ErrorCode 枚举或字符串）
        status_code: HTTP 状态码
        details: 详细错误信息列表
        extra: 额外的上下文信息
    """

    def __init__(
        self,
        message: str,
        code: ErrorCodeType = ErrorCode.BUSINESS_ERROR,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or []
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式

        Returns:
            包含异常信息的字典
        """
        return {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": copy.deepcopy(self.details),
            "extra": copy.deepcopy(self.extra)
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"status_code={self.status_code})"
        )


class RbacException(BusinessException):
    """权限异常基类
    
    使用示例:
        raise RbacException("权限错误")
        raise RbacException("需要管理员权限", code=ErrorCode.ADMIN_REQUIRED)
    """
    
    def __init__(
        self,
        message: str = "权限错误",
        code: ErrorCodeType = ErrorCode.PERMISSION_DENIED,
        status_code: int = status.HTTP_403_FORBIDDEN,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            details=details,
            **extra
        )


class PermissionDeniedException(RbacException):
    """权限拒绝异常
    
    当用户没有所需权限时抛出
    
    使用示例:
        if not engine.has_permission(user_id, "system:user:remove"):
            raise PermissionDeniedException(
                permission_codes=["system:user:remove"],
                user_id=user_id
            )
    """
    
    def __init__(
        self,
        message: str = "权限不足",
        permission_codes: Optional[List[str]] = None,
        user_id: Optional[int] = None,
        require_all: bool = True,
    ):
        details = []
        if permission_codes:
            joiner = "全部" if require_all else "任一"
            details.append(f"所需权限（{joiner}）: {', '.join(permission_codes)}")
        
        super().__init__(
            message=message,
            code=ErrorCode.PERMISSION_DENIED,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details or None,
            permission_codes=permission_codes,
            user_id=user_id,
        )
        self.permission_codes = permission_codes or []
        self.user_id = user_id
        self.require_all = require_all


class CircularReferenceException(RbacException):
    """层级循环引用异常
    
    写入路径在修改 parent_id 前校验，避免把节点挂到自己的子孙下面。
    """
    
    def __init__(self, node_id: int, new_parent_id: int):
        super().__init__(
            message=f"不能将节点 {node_id} 的上级设置为 {new_parent_id}，会形成循环引用",
            code=ErrorCode.CIRCULAR_REFERENCE,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            node_id=node_id,
            new_parent_id=new_parent_id,
        )
        self.node_id = node_id
        self.new_parent_id = new_parent_id


class StoreUnavailableException(BusinessException):
    """协作存储不可用异常
    
    用户、角色、菜单、部门等查询接口失败时抛出。引擎不会把它吞掉
    变成空权限，调用方据此区分"无权限"与"暂时无法判断"。
    
    使用示例:
        try:
            engine.has_permission(user_id, "system:user:list")
        except StoreUnavailableException:
            return JSONResponse(status_code=503, content={"message": "权限服务暂不可用"})
    """
    
    def __init__(
        self,
        message: str = "权限数据存储暂时不可用",
        store: Optional[str] = None,
        operation: Optional[str] = None,
        code: ErrorCodeType = ErrorCode.SERVICE_UNAVAILABLE,
    ):
        details = []
        if store:
            details.append(f"存储: {store}")
        if operation:
            details.append(f"操作: {operation}")
        
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details or None,
            store=store,
            operation=operation,
        )
        self.store = store
        self.operation = operation


__all__ = [
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "RbacException",
    "PermissionDeniedException",
    "CircularReferenceException",
    "StoreUnavailableException",
]

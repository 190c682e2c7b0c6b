"""异常定义测试"""

import pytest

from yrbac import (
    BusinessException,
    CircularReferenceException,
    ErrorCode,
    PermissionDeniedException,
    RbacException,
    StoreUnavailableException,
)


class TestBusinessException:
    """测试业务异常基类"""
    
    def test_defaults(self):
        """测试默认值"""
        exc = BusinessException("出错了")
        assert exc.message == "出错了"
        assert exc.code == ErrorCode.BUSINESS_ERROR
        assert exc.status_code == 400
        assert exc.details == []
        assert str(exc) == "出错了"
    
    def test_to_dict_copies(self):
        """测试 to_dict 返回副本"""
        exc = BusinessException("x", details=["a"], user_id=7)
        data = exc.to_dict()
        data["details"].append("b")
        assert exc.details == ["a"]
        assert data["extra"] == {"user_id": 7}
    
    def test_repr(self):
        """测试 repr"""
        assert "BusinessException(message='x'" in repr(BusinessException("x"))
    
    def test_error_code_is_str(self):
        """测试错误码可以直接当字符串使用"""
        assert ErrorCode.PERMISSION_DENIED == "PERMISSION_DENIED"


class TestRbacExceptions:
    """测试权限异常"""
    
    def test_rbac_exception_defaults(self):
        """测试权限异常默认 403"""
        exc = RbacException()
        assert exc.status_code == 403
        assert exc.code == ErrorCode.PERMISSION_DENIED
    
    def test_permission_denied(self):
        """测试权限拒绝异常"""
        exc = PermissionDeniedException(permission_codes=["a:b", "c:d"], user_id=7, require_all=False)
        assert isinstance(exc, RbacException)
        assert exc.permission_codes == ["a:b", "c:d"]
        assert exc.user_id == 7
        assert exc.details == ["所需权限（任一）: a:b, c:d"]
        assert exc.extra["user_id"] == 7
    
    def test_permission_denied_without_codes(self):
        """测试不带权限标识"""
        exc = PermissionDeniedException()
        assert exc.message == "权限不足"
        assert exc.details == []
        assert exc.permission_codes == []
    
    def test_circular_reference(self):
        """测试循环引用异常"""
        exc = CircularReferenceException(1, 3)
        assert exc.status_code == 422
        assert exc.code == ErrorCode.CIRCULAR_REFERENCE
        assert exc.node_id == 1
        assert exc.new_parent_id == 3
        assert "循环引用" in exc.message


class TestStoreUnavailable:
    """测试存储不可用异常"""
    
    def test_fields(self):
        """测试字段"""
        exc = StoreUnavailableException(store="sqlalchemy", operation="roles.find_roles_of_user")
        assert exc.status_code == 503
        assert exc.code == ErrorCode.SERVICE_UNAVAILABLE
        assert exc.details == ["存储: sqlalchemy", "操作: roles.find_roles_of_user"]
        assert exc.store == "sqlalchemy"
    
    def test_not_a_permission_denial(self):
        """测试与权限拒绝区分"""
        with pytest.raises(StoreUnavailableException):
            raise StoreUnavailableException()
        assert not issubclass(StoreUnavailableException, RbacException)

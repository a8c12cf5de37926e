# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 错误类型
组件内部以 FsError 抛出，文件系统外观统一转换为结果字典返回
"""

from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    """错误类型"""
    NOT_FOUND = 'NotFound'                  # 用户/文件/描述符不存在
    ALREADY_EXISTS = 'AlreadyExists'        # 重名
    ALREADY_OPEN = 'AlreadyOpen'            # 文件已打开
    QUOTA_EXCEEDED = 'QuotaExceeded'        # 用户文件数达到上限
    TOO_MANY_OPEN_FILES = 'TooManyOpenFiles'  # 打开文件数达到上限
    NO_SPACE = 'NoSpace'                    # 磁盘空间不足
    PERMISSION_DENIED = 'PermissionDenied'  # 缺少读/写权限
    CORRUPTED_TABLE = 'CorruptedTable'      # 文件分配表损坏（内部不变量被破坏）
    INVALID_ARGUMENT = 'InvalidArgument'    # 参数或命令格式无效
    READ_PAST_END = 'ReadPastEnd'           # 读取超过文件尾
    IO_ERROR = 'IoError'                    # 镜像文件读写失败


class FsError(Exception):
    """文件系统错误，携带错误类型"""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_result(self) -> Dict[str, Any]:
        """转换为失败结果字典"""
        return fail(self.kind, self.message)


def fail(kind: ErrorKind, message: str) -> Dict[str, Any]:
    return {'success': False, 'kind': kind, 'error': message}


def ok(message: str = '', **data) -> Dict[str, Any]:
    return {'success': True, **data, 'message': message}

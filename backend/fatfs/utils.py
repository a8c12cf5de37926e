# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 工具函数
文本编解码、大小格式化、路径与保护字段解析
"""

from typing import Tuple

from config import *
from .errors import ErrorKind, FsError


def text_to_data(text: str) -> bytes:
    """文本 -> 字节（UTF-16-LE，每个代码单元 2 字节）"""
    return text.encode(TEXT_ENCODING)


def data_to_text(data: bytes) -> str:
    """字节 -> 文本；奇数长度的尾字节以替换字符显示"""
    return bytes(data).decode(TEXT_ENCODING, errors='replace')


def binary_to_string(data: bytes) -> str:
    """十六进制显示，如 '41 00 42 00'"""
    return ' '.join(f'{b:02X}' for b in data)


def get_size_str(size: int) -> str:
    """
    格式化容量显示
    整数部分不足3位时保留3位有效数字
    """
    units = ['B', 'KB', 'MB', 'GB', 'TB']
    unit_index = 0
    file_size = float(size)

    while file_size >= 1024 and unit_index < len(units) - 1:
        file_size /= 1024
        unit_index += 1

    if file_size >= 100:
        return f'{file_size:.0f}{units[unit_index]}'
    return f'{file_size:.3g}{units[unit_index]}'


def validate_name(name: str, what: str = '名称'):
    """验证用户名/文件名（单层名称，不含路径分隔符和空白）"""
    if not name:
        raise FsError(ErrorKind.INVALID_ARGUMENT, f'{what}不能为空')
    if '/' in name or any(ch.isspace() for ch in name):
        raise FsError(ErrorKind.INVALID_ARGUMENT, f'{what} "{name}" 包含非法字符')


def split_file_path(file_path: str) -> Tuple[str, str]:
    """'<用户名>/<文件名>' -> (用户名, 文件名)"""
    parts = file_path.strip().split('/')
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise FsError(ErrorKind.INVALID_ARGUMENT, f'路径 "{file_path}" 无效')
    return parts[0], parts[1]


def parse_protection(fields: str) -> int:
    """'101' 形式的保护字段 -> 权限位"""
    fields = fields.strip()
    if len(fields) != 3 or any(ch not in '01' for ch in fields):
        raise FsError(ErrorKind.INVALID_ARGUMENT, f'保护字段参数 "{fields}" 无效')

    permissions = 0
    for flag, bit in zip(fields, (PERM_READ, PERM_WRITE, PERM_EXECUTE)):
        if flag == '1':
            permissions |= bit
    return permissions


def format_protection(permissions: int) -> str:
    """权限位 -> '101' 形式"""
    return ''.join('1' if permissions & bit else '0'
                   for bit in (PERM_READ, PERM_WRITE, PERM_EXECUTE))

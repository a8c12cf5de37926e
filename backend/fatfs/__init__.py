# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 核心模块
"""

from .disk import DiskStorage
from .ids import IdAllocator
from .fat import FAT
from .errors import ErrorKind, FsError
from .open_files import OpenFile, OpenFileTable
from .catalog import FileInfo, FileCatalog
from .users import User, UserDirectory
from .image import ImageError
from .filesystem import FileSystem
from .commands import CommandProcessor, CommandType

__all__ = [
    'DiskStorage',
    'IdAllocator',
    'FAT',
    'ErrorKind',
    'FsError',
    'OpenFile',
    'OpenFileTable',
    'FileInfo',
    'FileCatalog',
    'User',
    'UserDirectory',
    'ImageError',
    'FileSystem',
    'CommandProcessor',
    'CommandType'
]

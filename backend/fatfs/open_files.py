# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 打开文件表模块
记录当前打开的文件（文件描述符），每个文件同一时刻至多一个描述符
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, TYPE_CHECKING

from .errors import ErrorKind, FsError
from .ids import IdAllocator

if TYPE_CHECKING:
    from .catalog import FileInfo

logger = logging.getLogger(__name__)


@dataclass
class OpenFile:
    """打开文件项（不持久化）"""
    id: int              # 即文件描述符
    read_pointer: int    # 读指针（磁盘绝对地址）
    file_id: int         # 外键

    def to_dict(self) -> dict:
        return {
            'fd': self.id,
            'read_pointer': self.read_pointer,
            'file_id': self.file_id
        }

    def __str__(self) -> str:
        return f"{{ 文件描述符：{self.id}，读指针：0x{self.read_pointer:X} }}"


class OpenFileTable:
    """打开文件表"""

    def __init__(self, max_open_file_count: int, ids: IdAllocator):
        self.max_open_file_count = max_open_file_count
        self.ids = ids
        self.open_files: Dict[int, OpenFile] = {}

    def open(self, file: 'FileInfo') -> OpenFile:
        """打开文件，读指针置于文件头"""
        existing = self.find_by_file(file)
        if existing is not None:
            raise FsError(ErrorKind.ALREADY_OPEN, f"文件 \"{file.name}\" 已经打开：{existing}")

        if len(self.open_files) >= self.max_open_file_count:
            raise FsError(ErrorKind.TOO_MANY_OPEN_FILES, "打开文件已达最大数目")

        open_file = OpenFile(id=self.ids.next(), read_pointer=file.start_address, file_id=file.id)
        self.open_files[open_file.id] = open_file
        logger.debug(f"打开文件 {file.id}，文件描述符 {open_file.id}")
        return open_file

    def close(self, open_file: OpenFile):
        self.open_files.pop(open_file.id, None)
        logger.debug(f"关闭文件描述符 {open_file.id}")

    def get(self, fd: int) -> OpenFile:
        if fd not in self.open_files:
            raise FsError(ErrorKind.NOT_FOUND, f"文件描述符 {fd} 不存在")
        return self.open_files[fd]

    def find_by_file(self, file: 'FileInfo') -> Optional[OpenFile]:
        for open_file in self.open_files.values():
            if open_file.file_id == file.id:
                return open_file
        return None

    def reset_read_pointer(self, open_file: OpenFile, file: 'FileInfo'):
        """读指针回到文件头"""
        open_file.read_pointer = file.start_address
        logger.info(f"重置了文件描述符 {open_file.id} 的读指针，当前为 0x{open_file.read_pointer:X}")

    def clear(self):
        """清空打开文件表（持久化之前、进程启动时）"""
        self.open_files.clear()

    def list(self) -> List[OpenFile]:
        return list(self.open_files.values())

    def __len__(self) -> int:
        return len(self.open_files)

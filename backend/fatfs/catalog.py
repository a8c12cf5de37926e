# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 文件目录模块
按 id 登记所有文件，每个文件属于唯一用户，可按 (用户, 文件名) 查找
"""

import logging
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from config import *
from .errors import ErrorKind, FsError
from .fat import FAT
from .ids import IdAllocator
from .open_files import OpenFileTable
from .utils import format_protection, get_size_str, validate_name

if TYPE_CHECKING:
    from .users import User

logger = logging.getLogger(__name__)


@dataclass
class FileInfo:
    """文件目录项"""
    id: int
    name: str
    start_address: int   # 首块起始地址，创建后不变
    end_address: int     # 最后写入字节之后的地址，只增不减
    length: int          # 累计写入字节数
    permissions: int     # 保护字段 (R, W, X)
    user_id: int         # 外键

    # 序列化格式: id, 名字长度, [名字], 开始地址, 结束地址, 长度, 权限, 用户id
    HEAD_FORMAT = '<IH'
    TAIL_FORMAT = '<QQQBI'

    @property
    def can_read(self) -> bool:
        return bool(self.permissions & PERM_READ)

    @property
    def can_write(self) -> bool:
        return bool(self.permissions & PERM_WRITE)

    @property
    def can_execute(self) -> bool:
        return bool(self.permissions & PERM_EXECUTE)

    def to_bytes(self) -> bytes:
        name_bytes = self.name.encode('utf-8')
        return (struct.pack(self.HEAD_FORMAT, self.id, len(name_bytes))
                + name_bytes
                + struct.pack(self.TAIL_FORMAT, self.start_address, self.end_address,
                              self.length, self.permissions, self.user_id))

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> Tuple['FileInfo', int]:
        """从字节数据解析，返回 (目录项, 下一偏移)"""
        file_id, name_len = struct.unpack_from(cls.HEAD_FORMAT, data, offset)
        offset += struct.calcsize(cls.HEAD_FORMAT)
        name = bytes(data[offset:offset + name_len]).decode('utf-8')
        offset += name_len
        start, end, length, permissions, user_id = struct.unpack_from(cls.TAIL_FORMAT, data, offset)
        offset += struct.calcsize(cls.TAIL_FORMAT)
        return cls(
            id=file_id,
            name=name,
            start_address=start,
            end_address=end,
            length=length,
            permissions=permissions,
            user_id=user_id
        ), offset

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'start_address': self.start_address,
            'end_address': self.end_address,
            'length': self.length,
            'protection': format_protection(self.permissions),
            'user_id': self.user_id
        }

    def __str__(self) -> str:
        r, w, x = format_protection(self.permissions)
        return (f"{{ 文件名：{self.name}, 开始地址：0x{self.start_address:X}，"
                f"结束地址：0x{self.end_address:X}，文件长度：{get_size_str(self.length)}，"
                f"保护字段 (R, W, X)：({r}, {w}, {x}) }}")


class FileCatalog:
    """
    文件目录
    创建时同名文件先删除再新建（替换不计入配额）
    """

    def __init__(self, fat: FAT, block_size: int, max_file_count_per_user: int,
                 ids: IdAllocator, open_files: OpenFileTable):
        self.fat = fat
        self.block_size = block_size
        self.max_file_count_per_user = max_file_count_per_user
        self.ids = ids
        self.open_files = open_files
        self.files: Dict[int, FileInfo] = {}

    def create(self, user: 'User', name: str, read: bool, write: bool, execute: bool) -> FileInfo:
        """创建文件，分配一个盘块"""
        validate_name(name, '文件名')

        # 若文件已存在，则删除（先于配额检查）
        existing = self.find(user, name)
        if existing is not None:
            logger.info(f"文件 \"{user.name}/{name}\" 已存在，先删除")
            self.delete(existing)

        # 检查文件数目
        if self.count_user_files(user) >= self.max_file_count_per_user:
            raise FsError(ErrorKind.QUOTA_EXCEEDED, f"用户 {user.name} 文件已达最大数目")

        block_id = self.fat.allocate_free()
        start_address = block_id * self.block_size

        permissions = ((PERM_READ if read else 0)
                       | (PERM_WRITE if write else 0)
                       | (PERM_EXECUTE if execute else 0))
        file = FileInfo(
            id=self.ids.next(),
            name=name,
            start_address=start_address,
            end_address=start_address,
            length=0,
            permissions=permissions,
            user_id=user.id
        )
        self.files[file.id] = file
        logger.info(f"创建文件 \"{user.name}/{name}\"，首块 {block_id}")
        return file

    def delete(self, file: FileInfo):
        """删除文件：关闭描述符、释放块链、移除目录项"""
        open_file = self.open_files.find_by_file(file)
        if open_file is not None:
            self.open_files.close(open_file)

        # 先完整校验块链，再逐块释放
        blocks = self.fat.chain(file.start_address // self.block_size)
        for block_id in blocks:
            self.fat.free(block_id)

        del self.files[file.id]
        logger.info(f"删除文件 {file.name}，释放盘块 {blocks}")

    def find(self, user: 'User', name: str) -> Optional[FileInfo]:
        for file in self.files.values():
            if file.user_id == user.id and file.name == name:
                return file
        return None

    def by_id(self, file_id: int) -> FileInfo:
        if file_id not in self.files:
            raise FsError(ErrorKind.NOT_FOUND, f"ID 为 {file_id} 的文件不存在")
        return self.files[file_id]

    def list_user_files(self, user: 'User') -> List[FileInfo]:
        return [file for file in self.files.values() if file.user_id == user.id]

    def count_user_files(self, user: 'User') -> int:
        return len(self.list_user_files(user))

    def list(self) -> List[FileInfo]:
        return list(self.files.values())

    def restore(self, files: List[FileInfo]):
        self.files = {file.id: file for file in files}

    def __len__(self) -> int:
        return len(self.files)

# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 用户目录模块
按用户名登记用户；命名空间只有一层：<用户名>/<文件名>
"""

import logging
import struct
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .catalog import FileCatalog
from .errors import ErrorKind, FsError
from .ids import IdAllocator
from .utils import validate_name

logger = logging.getLogger(__name__)


@dataclass
class User:
    """用户"""
    id: int
    name: str

    def to_bytes(self) -> bytes:
        name_bytes = self.name.encode('utf-8')
        return struct.pack('<IH', self.id, len(name_bytes)) + name_bytes

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> Tuple['User', int]:
        user_id, name_len = struct.unpack_from('<IH', data, offset)
        offset += struct.calcsize('<IH')
        name = bytes(data[offset:offset + name_len]).decode('utf-8')
        return cls(id=user_id, name=name), offset + name_len

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name}

    def __str__(self) -> str:
        return self.name


class UserDirectory:
    """用户目录"""

    def __init__(self, catalog: FileCatalog, ids: IdAllocator):
        self.catalog = catalog
        self.ids = ids
        self.users: Dict[str, User] = {}

    def create(self, name: str) -> User:
        validate_name(name, '用户名')
        if name in self.users:
            raise FsError(ErrorKind.ALREADY_EXISTS, f"用户名 {name} 已经存在")

        user = User(id=self.ids.next(), name=name)
        self.users[name] = user
        logger.info(f"创建用户 {name}（id={user.id}）")
        return user

    def delete(self, user: User):
        """删除用户的所有文件，再移除用户"""
        for file in self.catalog.list_user_files(user):
            self.catalog.delete(file)

        del self.users[user.name]
        logger.info(f"删除用户 {user.name}")

    def by_name(self, name: str) -> User:
        if name not in self.users:
            raise FsError(ErrorKind.NOT_FOUND, f"用户 {name} 不存在")
        return self.users[name]

    def by_id(self, user_id: int) -> User:
        for user in self.users.values():
            if user.id == user_id:
                return user
        raise FsError(ErrorKind.NOT_FOUND, f"ID 为 {user_id} 的用户不存在")

    def list(self) -> List[User]:
        return list(self.users.values())

    def restore(self, users: List[User]):
        self.users = {user.name: user for user in users}

    def __len__(self) -> int:
        return len(self.users)

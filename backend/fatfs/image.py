# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 镜像编码模块
按字段逐项编码整个文件系统（磁盘字节、FAT、用户、文件、标识符占用情况）

镜像结构（小端）：
- 头部: 魔数(4) 版本(2) 磁盘大小(8) 块大小(8) 每用户最大文件数(4) 最大打开文件数(4)
- 磁盘数据: 磁盘大小 字节
- FAT: 块数 × 8 字节（有符号）
- 用户: 数量(4) + 若干用户项
- 文件: 数量(4) + 若干文件项
- 标识符: 用户 id 数量(4) + id 列表，文件 id 数量(4) + id 列表
打开文件表不进入镜像
"""

import struct
from dataclasses import dataclass, field
from typing import List

from config import *
from .catalog import FileInfo
from .users import User

HEADER_FORMAT = '<4sHQQII'


class ImageError(ValueError):
    """镜像无法解析"""


@dataclass
class FileSystemImage:
    """解码后的镜像内容"""
    disk_size: int
    block_size: int
    max_file_count_per_user: int
    max_open_file_count: int
    disk_data: bytes = b''
    fat_entries: List[int] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    files: List[FileInfo] = field(default_factory=list)
    user_ids: List[int] = field(default_factory=list)
    file_ids: List[int] = field(default_factory=list)


def _pack_ids(ids: List[int]) -> bytes:
    return struct.pack(f'<I{len(ids)}I', len(ids), *ids)


def encode_image(image: FileSystemImage) -> bytes:
    """镜像 -> 字节"""
    data = bytearray()
    data += struct.pack(HEADER_FORMAT, IMAGE_MAGIC, IMAGE_VERSION,
                        image.disk_size, image.block_size,
                        image.max_file_count_per_user, image.max_open_file_count)
    data += image.disk_data
    data += struct.pack(f'<{len(image.fat_entries)}q', *image.fat_entries)

    data += struct.pack('<I', len(image.users))
    for user in image.users:
        data += user.to_bytes()

    data += struct.pack('<I', len(image.files))
    for file in image.files:
        data += file.to_bytes()

    data += _pack_ids(image.user_ids)
    data += _pack_ids(image.file_ids)
    return bytes(data)


class _Reader:
    """顺序读取器"""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def unpack(self, fmt: str) -> tuple:
        size = struct.calcsize(fmt)
        if self.offset + size > len(self.data):
            raise ImageError("镜像数据不完整")
        values = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += size
        return values

    def take(self, count: int) -> bytes:
        if self.offset + count > len(self.data):
            raise ImageError("镜像数据不完整")
        chunk = bytes(self.data[self.offset:self.offset + count])
        self.offset += count
        return chunk

    def records(self, cls) -> list:
        (count,) = self.unpack('<I')
        items = []
        for _ in range(count):
            try:
                item, self.offset = cls.from_bytes(self.data, self.offset)
            except (struct.error, UnicodeDecodeError) as e:
                raise ImageError(f"镜像记录损坏: {e}") from e
            items.append(item)
        return items

    def ids(self) -> List[int]:
        (count,) = self.unpack('<I')
        return list(self.unpack(f'<{count}I'))


def decode_image(data: bytes) -> FileSystemImage:
    """字节 -> 镜像"""
    reader = _Reader(data)
    magic, version, disk_size, block_size, max_files, max_open = reader.unpack(HEADER_FORMAT)

    if magic != IMAGE_MAGIC:
        raise ImageError(f"无效的镜像魔数: {magic!r}")
    if version != IMAGE_VERSION:
        raise ImageError(f"不支持的镜像版本: {version}")
    if block_size <= 0 or disk_size % block_size != 0:
        raise ImageError(f"镜像中的块大小无效: {block_size}")
    # 0 号块预留，至少还要有一个可用块
    if disk_size < 2 * block_size:
        raise ImageError(f"镜像中的磁盘大小无效: {disk_size}")

    image = FileSystemImage(
        disk_size=disk_size,
        block_size=block_size,
        max_file_count_per_user=max_files,
        max_open_file_count=max_open
    )
    image.disk_data = reader.take(disk_size)
    block_count = disk_size // block_size
    image.fat_entries = list(reader.unpack(f'<{block_count}q'))
    image.users = reader.records(User)
    image.files = reader.records(FileInfo)
    image.user_ids = reader.ids()
    image.file_ids = reader.ids()

    if reader.offset != len(data):
        raise ImageError("镜像末尾存在多余数据")
    return image

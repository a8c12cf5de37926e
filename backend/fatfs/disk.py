# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 磁盘存储模块
以定长字节数组模拟磁盘，按绝对地址读写，越界部分静默截断
"""

import time
from typing import List

from config import *


class DiskStorage:
    """
    磁盘存储类
    上层组件只按块大小、块对齐的方式访问；本类不做对齐约束
    """

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError(f"无效的磁盘大小: {size}")

        self.size = size
        self.data = bytearray(size)

        # 操作记录（用于可视化）
        self.operation_log: List[dict] = []
        self.stats = {'reads': 0, 'writes': 0}

    def read(self, address: int, count: int) -> bytes:
        """从 address 开始读取至多 count 字节"""
        if address < 0 or count < 0:
            raise ValueError(f"无效的读取范围: address={address}, count={count}")

        count = max(0, min(count, self.size - address))
        self.stats['reads'] += 1
        self._log_operation("READ", f"读取 0x{address:X} 起 {count} 字节")
        return bytes(self.data[address:address + count])

    def write(self, address: int, data: bytes) -> int:
        """写入尽可能多的字节，返回实际写入字节数"""
        if address < 0:
            raise ValueError(f"无效的写入地址: {address}")

        count = max(0, min(len(data), self.size - address))
        self.data[address:address + count] = data[:count]
        self.stats['writes'] += 1
        self._log_operation("WRITE", f"写入 0x{address:X} 起 {count} 字节")
        return count

    def read_block(self, block_id: int, block_size: int) -> bytes:
        """读取指定块"""
        return self.read(block_id * block_size, block_size)

    def to_bytes(self) -> bytes:
        return bytes(self.data)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'DiskStorage':
        disk = cls(len(data))
        disk.data[:] = data
        return disk

    def get_disk_info(self) -> dict:
        """获取磁盘信息"""
        return {
            'total_size': self.size,
            'reads': self.stats['reads'],
            'writes': self.stats['writes'],
        }

    def _log_operation(self, op_type: str, message: str):
        """记录操作日志"""
        log_entry = {
            'timestamp': time.time(),
            'type': op_type,
            'message': message
        }
        self.operation_log.append(log_entry)
        # 只保留最近的日志
        if len(self.operation_log) > OPERATION_LOG_SIZE:
            self.operation_log = self.operation_log[-OPERATION_LOG_SIZE:]

    def get_operation_log(self) -> List[dict]:
        """获取操作日志"""
        return self.operation_log.copy()

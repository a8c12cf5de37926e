# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 文件分配表模块
数据组织: FAT显式链接方式
空闲块管理: 直接基于FAT表
"""

import logging
import random
from typing import List, Optional

from config import *
from .errors import ErrorKind, FsError

logger = logging.getLogger(__name__)


class FAT:
    """
    文件分配表
    每个盘块一项：FAT_FREE 表示空闲，FAT_EOF 表示文件尾块，正整数表示下一盘块号
    0 号块永久预留，因此 FAT_FREE 的值同时也是"非法的下一块号"
    """

    def __init__(self, block_count: int, rng: Optional[random.Random] = None):
        if block_count < 2:
            raise ValueError(f"盘块数量过少: {block_count}")

        self.table: List[int] = [FAT_FREE] * block_count
        self.rng = rng or random.Random()

    @property
    def block_count(self) -> int:
        return len(self.table)

    def _check_index(self, block_id: int):
        if block_id < 0 or block_id >= len(self.table):
            raise FsError(ErrorKind.CORRUPTED_TABLE, f"盘块号越界: {block_id}")

    def get(self, block_id: int) -> int:
        self._check_index(block_id)
        return self.table[block_id]

    def link(self, block_id: int, next_block: int):
        """设置表项（下一盘块号或 FAT_EOF）"""
        self._check_index(block_id)
        if next_block != FAT_EOF and next_block != FAT_FREE:
            self._check_index(next_block)
        self.table[block_id] = next_block

    def free_count(self) -> int:
        """空闲块数（不含预留的 0 号块）"""
        return sum(1 for i, entry in enumerate(self.table)
                   if entry == FAT_FREE and i != RESERVED_BLOCK)

    def allocate_free(self) -> int:
        """
        随机选取一个空闲块并标记为 EOF
        选取顺序不重要，只需保证空闲/占用计数正确
        """
        free_blocks = [i for i, entry in enumerate(self.table)
                       if entry == FAT_FREE and i != RESERVED_BLOCK]
        if not free_blocks:
            logger.warning("无空闲盘块可分配")
            raise FsError(ErrorKind.NO_SPACE, "无空闲盘块可分配")

        block_id = self.rng.choice(free_blocks)
        self.table[block_id] = FAT_EOF
        logger.debug(f"分配块: {block_id}")
        return block_id

    def free(self, block_id: int):
        """释放块"""
        if block_id == RESERVED_BLOCK:
            logger.error("试图释放预留的 0 号块")
            raise FsError(ErrorKind.CORRUPTED_TABLE, "文件分配表损坏：试图释放预留块")

        self._check_index(block_id)
        self.table[block_id] = FAT_FREE
        logger.debug(f"释放块: {block_id}")

    def chain(self, start_block: int) -> List[int]:
        """
        获取从 start_block 开始的块链
        链必须以 EOF 结束，途中遇到空闲项（即 0 号块）或环路都视为表损坏
        """
        blocks = []
        visited = set()
        current = start_block

        while current != FAT_EOF:
            if current == RESERVED_BLOCK:
                logger.error(f"块链在 {blocks} 之后出现意外的零项")
                raise FsError(ErrorKind.CORRUPTED_TABLE, "文件分配表出现意外的零项")
            self._check_index(current)
            if current in visited:
                logger.error(f"检测到FAT环路: {current}")
                raise FsError(ErrorKind.CORRUPTED_TABLE, f"文件分配表出现环路: {current}")

            blocks.append(current)
            visited.add(current)
            current = self.table[current]

        return blocks

    def entries(self) -> List[int]:
        return list(self.table)

    @classmethod
    def from_entries(cls, entries: List[int], rng: Optional[random.Random] = None) -> 'FAT':
        fat = cls(len(entries), rng)
        fat.table = list(entries)
        return fat

    @staticmethod
    def entry_str(entry: int) -> str:
        if entry == FAT_EOF:
            return 'EOF'
        if entry == FAT_FREE:
            return '-'
        return str(entry)

    def to_display(self) -> str:
        """表格形式显示（每行 10 项，跳过预留块）"""
        lines = ['[']
        row = []
        for i in range(1, len(self.table)):
            if i % 10 == 1:
                if row:
                    lines.append(' '.join(row))
                last = min(i + 9, len(self.table) - 1)
                row = [f'  ({i:3} ~ {last:3})\t']
            row.append(f'{self.entry_str(self.table[i]):>3}')
        if row:
            lines.append(' '.join(row))
        lines.append(']')
        return '\n'.join(lines)

# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 标识符分配模块
每类实体（用户、文件、打开文件）各持有一个分配器，归属于单个文件系统实例
"""

from typing import List, Set


class IdAllocator:
    """分配当前未被占用的最小非负整数"""

    def __init__(self, kind: str = ''):
        self.kind = kind
        self.ids: Set[int] = set()

    def next(self) -> int:
        """生成并占用新 id"""
        new_id = 0
        while new_id in self.ids:
            new_id += 1
        self.ids.add(new_id)
        return new_id

    def reserve(self, entity_id: int):
        """占用指定 id（恢复镜像后重新播种时使用）"""
        if entity_id < 0:
            raise ValueError(f"无效的 id: {entity_id}")
        self.ids.add(entity_id)

    def reset(self):
        self.ids.clear()

    def reserved(self) -> List[int]:
        return sorted(self.ids)

    def __contains__(self, entity_id: int) -> bool:
        return entity_id in self.ids

    def __len__(self) -> int:
        return len(self.ids)

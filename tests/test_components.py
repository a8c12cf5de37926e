# -*- coding: utf-8 -*-
"""
组件单元测试：磁盘存储、标识符分配、文件分配表、工具函数
"""

import random

import pytest

from config import FAT_EOF, FAT_FREE, PERM_READ, PERM_WRITE
from fatfs import FAT, DiskStorage, ErrorKind, FsError, IdAllocator
from fatfs.utils import (data_to_text, format_protection, parse_protection,
                         split_file_path, text_to_data, validate_name)


# ==================== 磁盘存储 ====================
def test_disk_read_write():
    """测试1: 按地址读写"""
    disk = DiskStorage(16)
    assert disk.write(4, b'abcd') == 4
    assert disk.read(4, 4) == b'abcd'
    assert disk.read(0, 4) == b'\x00' * 4


def test_disk_truncates_at_end():
    """测试2: 越界部分静默截断"""
    disk = DiskStorage(8)
    assert disk.write(6, b'xyz') == 2
    assert disk.read(6, 10) == b'xy'
    assert disk.read(8, 4) == b''


def test_disk_rejects_negative_range():
    disk = DiskStorage(8)
    with pytest.raises(ValueError):
        disk.read(-1, 2)
    with pytest.raises(ValueError):
        disk.write(-1, b'a')


def test_disk_bytes_and_log():
    disk = DiskStorage(8)
    disk.write(0, b'hi')
    copy = DiskStorage.from_bytes(disk.to_bytes())
    assert copy.read(0, 2) == b'hi'
    assert copy.size == 8

    log = disk.get_operation_log()
    assert log[-1]['type'] == 'WRITE'
    assert disk.get_disk_info()['writes'] == 1


# ==================== 标识符分配 ====================
def test_id_allocator_never_reuses_reserved():
    ids = IdAllocator('file')
    assert [ids.next(), ids.next(), ids.next()] == [0, 1, 2]
    ids.reserve(4)
    assert ids.next() == 3
    assert ids.next() == 5
    assert 4 in ids
    assert len(ids) == 6
    assert ids.reserved() == [0, 1, 2, 3, 4, 5]


def test_id_allocators_are_independent():
    """不同实例之间互不影响"""
    a = IdAllocator('user')
    b = IdAllocator('user')
    a.next()
    a.next()
    assert b.next() == 0
    a.reset()
    assert a.next() == 0


# ==================== 文件分配表 ====================
def test_fat_reserved_block_never_allocated():
    fat = FAT(4, random.Random(0))
    allocated = {fat.allocate_free() for _ in range(3)}
    assert allocated == {1, 2, 3}
    assert fat.free_count() == 0

    with pytest.raises(FsError) as e:
        fat.allocate_free()
    assert e.value.kind == ErrorKind.NO_SPACE


def test_fat_chain_and_free():
    fat = FAT(8, random.Random(0))
    fat.link(2, 5)
    fat.link(5, 3)
    fat.link(3, FAT_EOF)
    assert fat.chain(2) == [2, 5, 3]
    assert fat.free_count() == 4

    for block_id in fat.chain(2):
        fat.free(block_id)
    assert fat.free_count() == 7
    assert fat.get(5) == FAT_FREE


def test_fat_chain_detects_corruption():
    """测试: 链中出现空闲项、环路"""
    fat = FAT(8)
    fat.link(2, 4)
    with pytest.raises(FsError) as e:
        fat.chain(2)
    assert e.value.kind == ErrorKind.CORRUPTED_TABLE

    fat.link(4, 2)
    with pytest.raises(FsError) as e:
        fat.chain(2)
    assert e.value.kind == ErrorKind.CORRUPTED_TABLE


def test_fat_rejects_reserved_and_out_of_range():
    fat = FAT(4)
    with pytest.raises(FsError):
        fat.free(0)
    with pytest.raises(FsError):
        fat.get(4)
    with pytest.raises(ValueError):
        FAT(1)


def test_fat_display():
    fat = FAT.from_entries([0, -1, 0, 1])
    assert FAT.entry_str(-1) == 'EOF'
    assert FAT.entry_str(0) == '-'
    text = fat.to_display()
    assert text.startswith('[')
    assert 'EOF' in text


# ==================== 工具函数 ====================
def test_text_encoding_two_bytes_per_unit():
    data = text_to_data('文A')
    assert len(data) == 4
    assert data_to_text(data) == '文A'


def test_protection_fields():
    assert parse_protection('110') == PERM_READ | PERM_WRITE
    assert format_protection(PERM_READ) == '100'
    for bad in ('11', '1a0', '1111'):
        with pytest.raises(FsError) as e:
            parse_protection(bad)
        assert e.value.kind == ErrorKind.INVALID_ARGUMENT


def test_paths_and_names():
    assert split_file_path('user1/file1') == ('user1', 'file1')
    for bad in ('user1', 'a/b/c', '/file', 'user/'):
        with pytest.raises(FsError):
            split_file_path(bad)

    validate_name('ok_name')
    for bad in ('', 'a b', 'a/b'):
        with pytest.raises(FsError):
            validate_name(bad)

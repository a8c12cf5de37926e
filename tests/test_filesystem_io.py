# -*- coding: utf-8 -*-
"""
读写测试：跨块读写、块边界分配、权限、读越界、空间守恒
"""

import random

from conftest import open_new
from config import FAT_EOF
from fatfs import ErrorKind, FileSystem
from fatfs.utils import data_to_text, text_to_data


def _read_all(fs, fd):
    fs.rewind(fd)
    length = fs.get_handle(fd)['file'].length
    return fs.read_file(fd, length)


def test_write_then_read_whole_file(fs):
    """测试1: 写入的内容原样读回"""
    fd = open_new(fs)
    data = text_to_data('文字TEXTtext123')
    result = fs.write_file(fd, data)
    assert result['success']
    assert result['bytes_written'] == len(data)

    read = _read_all(fs, fd)
    assert read['success']
    assert read['data'] == data
    assert data_to_text(read['data']) == '文字TEXTtext123'


def test_multiple_appends(fs):
    """测试2: 多次追加写入按顺序拼接"""
    fd = open_new(fs)
    pieces = [b'abc', b'defgh', b'', b'ijklmnopq', b'r']
    for piece in pieces:
        assert fs.write_file(fd, piece)['success']
    assert _read_all(fs, fd)['data'] == b''.join(pieces)
    assert fs.check_consistency()['success']


def test_write_count_prefix(fs):
    fd = open_new(fs)
    result = fs.write_file(fd, b'abcdef', 3)
    assert result['bytes_written'] == 3
    assert _read_all(fs, fd)['data'] == b'abc'
    assert fs.write_file(fd, b'ab', 5)['kind'] == ErrorKind.INVALID_ARGUMENT


def test_exact_block_boundary_adds_empty_tail(fs):
    """测试3: 恰好写满块时链接一个空的尾块"""
    fd = open_new(fs)
    fs.write_file(fd, b'abcd')
    info = fs.get_file_info('alice', 'f')
    assert info['block_count'] == 2
    file = info['file']
    assert file.length == 4
    assert file.end_address == info['blocks'][1] * fs.block_size
    assert fs.fat.get(info['blocks'][1]) == FAT_EOF


def test_short_write_stays_in_block(fs):
    fd = open_new(fs)
    fs.write_file(fd, b'abc')
    info = fs.get_file_info('alice', 'f')
    assert info['block_count'] == 1
    assert info['file'].end_address == info['file'].start_address + 3


def test_blocks_match_length(fs):
    """块数 = 长度 // 块大小 + 1"""
    fd = open_new(fs)
    total = 0
    for size in (1, 2, 3, 5, 8, 13):
        fs.write_file(fd, b'z' * size)
        total += size
        info = fs.get_file_info('alice', 'f')
        assert info['file'].length == total
        assert info['block_count'] == total // fs.block_size + 1


def test_read_in_steps_follows_chain(fs):
    """分多次读取，读指针沿块链前进"""
    fd = open_new(fs)
    data = bytes(range(1, 23))
    fs.write_file(fd, data)
    fs.rewind(fd)

    out = b''
    for step in (3, 1, 4, 5, 9):
        result = fs.read_file(fd, step)
        assert result['success']
        out += result['data']
    assert out == data

    result = fs.read_file(fd, 1)
    assert result['kind'] == ErrorKind.READ_PAST_END


def test_read_past_end_keeps_pointer(fs):
    fd = open_new(fs)
    fs.write_file(fd, b'hello!')
    fs.rewind(fd)
    fs.read_file(fd, 2)
    pointer = fs.get_handle(fd)['handle'].read_pointer

    result = fs.read_file(fd, 10)
    assert not result['success']
    assert result['kind'] == ErrorKind.READ_PAST_END
    assert fs.get_handle(fd)['handle'].read_pointer == pointer
    assert fs.read_file(fd, 4)['data'] == b'llo!'


def test_read_zero_bytes(fs):
    fd = open_new(fs)
    assert fs.read_file(fd, 0)['data'] == b''
    assert fs.read_file(fd, 1)['kind'] == ErrorKind.READ_PAST_END


def test_permissions(fs):
    """测试: 无写权限时拒绝写入，长度、结束地址和块链都不变"""
    fd = open_new(fs, name='ro', read=True, write=False)
    file = fs.get_handle(fd)['file']
    entries = fs.fat.entries()
    length, end_address = file.length, file.end_address

    assert fs.write_file(fd, b'x' * 9)['kind'] == ErrorKind.PERMISSION_DENIED
    assert fs.fat.entries() == entries
    assert file.length == length
    assert file.end_address == end_address
    assert fs.get_file_info('alice', 'ro')['block_count'] == 1

    fd = open_new(fs, name='wo', read=False, write=True)
    assert fs.write_file(fd, b'x')['success']
    assert fs.read_file(fd, 1)['kind'] == ErrorKind.PERMISSION_DENIED


def test_unknown_descriptor(fs):
    assert fs.read_file(99, 1)['kind'] == ErrorKind.NOT_FOUND
    assert fs.write_file(99, b'a')['kind'] == ErrorKind.NOT_FOUND
    assert fs.rewind(99)['kind'] == ErrorKind.NOT_FOUND


def test_free_block_conservation(fs):
    """空闲块 + 各文件块链长度之和 = 可用块数"""
    usable = fs.block_count - 1
    fds = [open_new(fs, name=name) for name in ('a', 'b')]
    fs.write_file(fds[0], b'q' * 17)
    fs.write_file(fds[1], b'w' * 8)
    open_new(fs, user='bob', name='c')

    used = sum(fs.get_file_info(user, name)['block_count']
               for user, name in (('alice', 'a'), ('alice', 'b'), ('bob', 'c')))
    assert fs.fat.free_count() + used == usable
    assert fs.storage_remaining() == fs.fat.free_count() * fs.block_size
    assert fs.check_consistency()['success']

    fs.delete_file('alice', 'a')
    assert fs.fat.free_count() + used - 5 == usable


def test_no_space_is_atomic(small_fs):
    """空间不足时不写入任何内容"""
    fd = open_new(small_fs)
    # 7 个可用块，文件占 1 块，剩余 6 块
    before = small_fs.fat.entries()
    result = small_fs.write_file(fd, b'x' * 40)
    assert result['kind'] == ErrorKind.NO_SPACE
    assert small_fs.fat.entries() == before
    assert small_fs.get_handle(fd)['file'].length == 0


def test_no_space_at_exact_boundary(small_fs):
    """写满所有空间恰好落在块边界时没有空块作为尾块"""
    fd = open_new(small_fs)
    # 当前块 4 字节 + 6 个空块 24 字节 = 28 字节，但写满后需要第 7 个空块
    result = small_fs.write_file(fd, b'x' * 28)
    assert result['kind'] == ErrorKind.NO_SPACE

    result = small_fs.write_file(fd, b'x' * 27)
    assert result['success']
    assert small_fs.fat.free_count() == 0
    assert _read_all(small_fs, fd)['data'] == b'x' * 27


def test_consistency_with_random_blocks():
    """测试: 块随机分配时（尾块号可能小于首块号）一致性检查仍然通过"""
    for seed in list(range(8)) + [1234]:
        fs = FileSystem(disk_size=256, block_size=4, rng=random.Random(seed))
        fs.create_user('alice')
        fd = open_new(fs, name='f')
        for size in (4, 7, 1, 12):
            assert fs.write_file(fd, b'r' * size)['success']
            check = fs.check_consistency()
            assert check['success'], (seed, check.get('problems'))
        assert _read_all(fs, fd)['data'] == b'r' * 24


def test_read_block(fs):
    fd = open_new(fs)
    fs.write_file(fd, b'wxyz1')
    blocks = fs.get_file_info('alice', 'f')['blocks']
    result = fs.read_block(blocks[0])
    assert result['data'] == b'wxyz'
    assert result['next_block'] == blocks[1]
    assert fs.read_block(fs.block_count)['kind'] == ErrorKind.INVALID_ARGUMENT


def test_corrupted_chain_reported(fs):
    fd = open_new(fs)
    fs.write_file(fd, b'abcdef')
    blocks = fs.get_file_info('alice', 'f')['blocks']
    fs.fat.table[blocks[0]] = 0

    fs.rewind(fd)
    assert fs.read_file(fd, 6)['kind'] == ErrorKind.CORRUPTED_TABLE
    check = fs.check_consistency()
    assert not check['success']
    assert check['problems']

# -*- coding: utf-8 -*-
"""
测试公共夹具
"""

import os
import random
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from fatfs import FileSystem  # noqa: E402


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fs(rng):
    """空文件系统：256 字节磁盘，4 字节块，已有用户 alice 和 bob"""
    filesystem = FileSystem(disk_size=256, block_size=4, max_file_count_per_user=3,
                            max_open_file_count=4, rng=rng)
    filesystem.create_user('alice')
    filesystem.create_user('bob')
    return filesystem


@pytest.fixture
def small_fs(rng):
    """小磁盘：8 个块，其中 7 个可用"""
    filesystem = FileSystem(disk_size=32, block_size=4, max_file_count_per_user=10,
                            max_open_file_count=4, rng=rng)
    filesystem.create_user('alice')
    return filesystem


def open_new(filesystem, user='alice', name='f', read=True, write=True):
    """创建并打开文件，返回文件描述符"""
    assert filesystem.create_file(user, name, read, write, False)['success']
    return filesystem.open_file(user, name)['handle'].id

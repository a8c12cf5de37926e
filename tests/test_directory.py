# -*- coding: utf-8 -*-
"""
用户目录、文件目录、打开文件表测试（经由文件系统外观）
"""

from conftest import open_new
from fatfs import ErrorKind


def test_create_user_duplicate(fs):
    result = fs.create_user('alice')
    assert not result['success']
    assert result['kind'] == ErrorKind.ALREADY_EXISTS


def test_create_user_invalid_name(fs):
    assert fs.create_user('a b')['kind'] == ErrorKind.INVALID_ARGUMENT


def test_list_users(fs):
    result = fs.list_users()
    assert [user.name for user in result['users']] == ['alice', 'bob']
    assert result['total'] == 2


def test_create_file_allocates_one_block(fs):
    free_before = fs.fat.free_count()
    result = fs.create_file('alice', 'notes')
    assert result['success']
    file = result['file']
    assert file.length == 0
    assert file.start_address == file.end_address
    assert file.start_address % fs.block_size == 0
    assert file.start_address != 0
    assert fs.fat.free_count() == free_before - 1


def test_create_file_unknown_user(fs):
    assert fs.create_file('carol', 'x')['kind'] == ErrorKind.NOT_FOUND


def test_quota_per_user(fs):
    for name in ('a', 'b', 'c'):
        assert fs.create_file('alice', name)['success']
    result = fs.create_file('alice', 'd')
    assert result['kind'] == ErrorKind.QUOTA_EXCEEDED
    # 其他用户不受影响
    assert fs.create_file('bob', 'd')['success']


def test_replace_at_quota_succeeds(fs):
    """同名文件先删除再配额检查，配额满时替换仍然成功"""
    for name in ('a', 'b', 'c'):
        fs.create_file('alice', name)
    fd = fs.open_file('alice', 'a')['handle'].id
    fs.write_file(fd, b'12345678')

    result = fs.create_file('alice', 'a')
    assert result['success']
    assert result['file'].length == 0
    # 旧文件的描述符随删除一并关闭
    assert fs.get_handle(fd)['kind'] == ErrorKind.NOT_FOUND
    assert fs.check_consistency()['success']


def test_delete_file_frees_chain(fs):
    fd = open_new(fs, name='data')
    free_before = fs.fat.free_count()
    fs.write_file(fd, b'x' * 10)
    blocks = fs.get_file_info('alice', 'data')['blocks']

    result = fs.delete_file('alice', 'data')
    assert result['success']
    assert result['freed_blocks'] == blocks
    assert fs.fat.free_count() == free_before + 1
    assert fs.get_handle(fd)['kind'] == ErrorKind.NOT_FOUND
    assert fs.get_file_info('alice', 'data')['kind'] == ErrorKind.NOT_FOUND


def test_delete_user_cascades(fs):
    free_before = fs.fat.free_count()
    fd = open_new(fs, name='one')
    fs.write_file(fd, b'abcdefgh')
    open_new(fs, name='two')

    result = fs.delete_user('alice')
    assert result['success']
    assert sorted(result['deleted_files']) == ['one', 'two']
    assert fs.fat.free_count() == free_before
    assert len(fs.open_files) == 0
    assert fs.list_files('alice')['kind'] == ErrorKind.NOT_FOUND


def test_user_ids_not_reused_after_delete(fs):
    bob_id = fs.directory.by_name('bob').id
    fs.delete_user('bob')
    carol = fs.create_user('carol')['user']
    assert carol.id != bob_id


def test_list_files_only_own(fs):
    fs.create_file('alice', 'a')
    fs.create_file('bob', 'b')
    result = fs.list_files('alice')
    assert [file.name for file in result['files']] == ['a']


def test_open_twice_rejected(fs):
    fd = open_new(fs, name='x')
    result = fs.open_file('alice', 'x')
    assert result['kind'] == ErrorKind.ALREADY_OPEN
    assert str(fd) in result['error']


def test_open_table_limit(fs):
    for name in ('a', 'b', 'c'):
        open_new(fs, name=name)
    open_new(fs, user='bob', name='d')
    fs.create_file('bob', 'e')
    assert fs.open_file('bob', 'e')['kind'] == ErrorKind.TOO_MANY_OPEN_FILES


def test_close_and_reopen(fs):
    fd = open_new(fs, name='x')
    assert fs.close_file(fd)['success']
    assert fs.close_file(fd)['kind'] == ErrorKind.NOT_FOUND
    new_fd = fs.open_file('alice', 'x')['handle'].id
    assert new_fd != fd


def test_file_info(fs):
    fd = open_new(fs, name='x')
    info = fs.get_file_info('alice', 'x')
    assert info['is_open']
    assert info['fd'] == fd
    assert info['block_count'] == 1
    assert info['file'].to_dict()['protection'] == '110'

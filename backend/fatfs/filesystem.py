# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 文件系统模块
实现用户、文件的创建、打开、读写、删除等操作
采用FAT显式链接方式组织数据，读写可以跨越盘块边界
"""

import functools
import logging
import random
import threading
from typing import Any, Dict, List, Optional

from config import *
from .catalog import FileCatalog, FileInfo
from .disk import DiskStorage
from .errors import ErrorKind, FsError, fail, ok
from .fat import FAT
from .ids import IdAllocator
from .image import FileSystemImage, ImageError, decode_image, encode_image
from .open_files import OpenFileTable
from .users import UserDirectory
from .utils import (binary_to_string, data_to_text, get_size_str,
                    parse_protection, text_to_data)

logger = logging.getLogger(__name__)


def _command(func):
    """在实例锁内执行，FsError 转换为失败结果"""
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            try:
                return func(self, *args, **kwargs)
            except FsError as e:
                if e.kind == ErrorKind.CORRUPTED_TABLE:
                    logger.error(f"{func.__name__} 失败: {e.message}")
                else:
                    logger.warning(f"{func.__name__} 失败: {e.message}")
                return e.to_result()
    return wrapper


class FileSystem:
    """
    文件系统类
    唯一入口：通过用户目录/文件目录解析名字，通过FAT分配和释放盘块，通过磁盘存储读写字节
    读写必须经过打开文件表（文件描述符），不直接使用文件 id
    """

    def __init__(self, disk_size: int = DISK_SIZE, block_size: int = BLOCK_SIZE,
                 max_file_count_per_user: int = MAX_FILE_COUNT_PER_USER,
                 max_open_file_count: int = MAX_OPEN_FILE_COUNT,
                 rng: Optional[random.Random] = None):
        """初始化文件系统"""
        if block_size <= 0 or disk_size <= 0 or disk_size % block_size != 0:
            raise ValueError(f"块大小无效: 磁盘 {disk_size} 字节不能按 {block_size} 字节分块")

        self.block_size = block_size
        self.max_file_count_per_user = max_file_count_per_user
        self.max_open_file_count = max_open_file_count
        self.lock = threading.RLock()

        self.disk = DiskStorage(disk_size)
        self.fat = FAT(disk_size // block_size, rng)

        # 每类实体一个标识符分配器，归本实例所有
        self.user_ids = IdAllocator('user')
        self.file_ids = IdAllocator('file')
        self.handle_ids = IdAllocator('handle')

        self.open_files = OpenFileTable(max_open_file_count, self.handle_ids)
        self.catalog = FileCatalog(self.fat, block_size, max_file_count_per_user,
                                   self.file_ids, self.open_files)
        self.directory = UserDirectory(self.catalog, self.user_ids)

    # ------------------------- 地址换算 -------------------------
    @property
    def disk_size(self) -> int:
        return self.disk.size

    @property
    def block_count(self) -> int:
        return self.fat.block_count

    def _block_number(self, address: int) -> int:
        return address // self.block_size

    def _block_address(self, block_id: int) -> int:
        return block_id * self.block_size

    def _block_offset(self, address: int) -> int:
        """块内偏移"""
        return address % self.block_size

    def _file_path(self, file: FileInfo) -> str:
        return f"{self.directory.by_id(file.user_id).name}/{file.name}"

    def _get_file(self, user_name: str, file_name: str) -> FileInfo:
        user = self.directory.by_name(user_name)
        file = self.catalog.find(user, file_name)
        if file is None:
            raise FsError(ErrorKind.NOT_FOUND, f"文件 \"{user_name}/{file_name}\" 不存在")
        return file

    def storage_remaining(self) -> int:
        """所有空闲块大小之和"""
        return self.fat.free_count() * self.block_size

    # ------------------------- 用户 -------------------------
    @_command
    def create_user(self, user_name: str) -> Dict[str, Any]:
        user = self.directory.create(user_name)
        return ok(f"用户 {user_name} 已创建", user=user)

    @_command
    def delete_user(self, user_name: str) -> Dict[str, Any]:
        """删除用户及其全部文件"""
        user = self.directory.by_name(user_name)
        deleted = [file.name for file in self.catalog.list_user_files(user)]
        self.directory.delete(user)
        return ok(f"用户 {user_name} 已删除", deleted_files=deleted)

    @_command
    def list_users(self) -> Dict[str, Any]:
        users = self.directory.list()
        return ok(users=users, total=len(users))

    # ------------------------- 文件 -------------------------
    @_command
    def list_files(self, user_name: str) -> Dict[str, Any]:
        """列用户文件目录"""
        user = self.directory.by_name(user_name)
        files = self.catalog.list_user_files(user)
        return ok(user=user, files=files, total=len(files))

    @_command
    def create_file(self, user_name: str, file_name: str, read: bool = True,
                    write: bool = True, execute: bool = False) -> Dict[str, Any]:
        """
        创建文件（同名文件先删除）

        Args:
            user_name: 用户名
            file_name: 文件名
            read, write, execute: 保护字段

        Returns:
            操作结果字典
        """
        user = self.directory.by_name(user_name)
        file = self.catalog.create(user, file_name, read, write, execute)
        return ok(f"文件 \"{user_name}/{file_name}\" 已创建", file=file)

    @_command
    def delete_file(self, user_name: str, file_name: str) -> Dict[str, Any]:
        """删除文件并释放其块链"""
        file = self._get_file(user_name, file_name)
        blocks = self.fat.chain(self._block_number(file.start_address))
        self.catalog.delete(file)
        return ok(f"文件 \"{user_name}/{file_name}\" 已删除",
                  freed_blocks=blocks, freed_block_count=len(blocks))

    @_command
    def get_file_info(self, user_name: str, file_name: str) -> Dict[str, Any]:
        """获取文件详细信息"""
        file = self._get_file(user_name, file_name)
        blocks = self.fat.chain(self._block_number(file.start_address))
        open_file = self.open_files.find_by_file(file)
        return ok(
            file=file,
            blocks=blocks,
            block_count=len(blocks),
            is_open=open_file is not None,
            fd=open_file.id if open_file else None
        )

    @_command
    def open_file(self, user_name: str, file_name: str) -> Dict[str, Any]:
        file = self._get_file(user_name, file_name)
        open_file = self.open_files.open(file)
        return ok(f"文件 \"{user_name}/{file_name}\" 已打开：{open_file}",
                  handle=open_file, file=file)

    @_command
    def close_file(self, fd: int) -> Dict[str, Any]:
        open_file = self.open_files.get(fd)
        self.open_files.close(open_file)
        return ok(f"文件描述符 {fd} 已关闭")

    @_command
    def get_handle(self, fd: int) -> Dict[str, Any]:
        open_file = self.open_files.get(fd)
        return ok(handle=open_file, file=self.catalog.by_id(open_file.file_id))

    @_command
    def rewind(self, fd: int) -> Dict[str, Any]:
        """读指针回到文件头"""
        open_file = self.open_files.get(fd)
        file = self.catalog.by_id(open_file.file_id)
        self.open_files.reset_read_pointer(open_file, file)
        return ok(handle=open_file)

    # ------------------------- 读写 -------------------------
    @_command
    def read_file(self, fd: int, count: int) -> Dict[str, Any]:
        """
        从读指针处读取 count 字节

        沿块链逐块读取：文件尾块最多读到结束地址的块内偏移，其余块读到块尾
        链在读满之前结束则返回 ReadPastEnd，读指针保持不变
        """
        open_file = self.open_files.get(fd)
        file = self.catalog.by_id(open_file.file_id)
        path = self._file_path(file)
        if not file.can_read:
            raise FsError(ErrorKind.PERMISSION_DENIED, f"文件 \"{path}\" 无读取权限")
        if count < 0:
            raise FsError(ErrorKind.INVALID_ARGUMENT, f"读取字节数无效: {count}")

        logger.info(f"开始读取文件 \"{path}\"，当前读指针 0x{open_file.read_pointer:X}")

        start_pointer = open_file.read_pointer
        data = bytearray()
        remaining = count

        block_id = self._block_number(open_file.read_pointer)
        block_offset = self._block_offset(open_file.read_pointer)
        while block_id != FAT_EOF and remaining > 0:
            if block_id == RESERVED_BLOCK:
                raise FsError(ErrorKind.CORRUPTED_TABLE, "文件分配表出现意外的零项")

            next_block = self.fat.get(block_id)
            if next_block == FAT_FREE:
                raise FsError(ErrorKind.CORRUPTED_TABLE, f"文件分配表损坏：盘块 {block_id} 被标记为空闲")

            # 当前块中最多可以读到多少字节
            if next_block == FAT_EOF:
                if self._block_number(file.end_address) != block_id:
                    raise FsError(ErrorKind.CORRUPTED_TABLE, f"文件 \"{path}\" 的文件尾不在尾块 {block_id} 中")
                available = self._block_offset(file.end_address) - block_offset
            else:
                available = self.block_size - block_offset
            chunk = min(max(available, 0), remaining)

            address = self._block_address(block_id) + block_offset
            piece = self.disk.read(address, chunk)
            data += piece
            remaining -= chunk

            logger.debug(f"当前盘块号：{block_id:3}，下一盘块号：{FAT.entry_str(next_block):>3}，"
                         f"读取内容：{binary_to_string(piece)}(H) \"{data_to_text(piece)}\"")

            # 非尾块读完时，读指针移到下一块的块首
            if next_block != FAT_EOF and block_offset + chunk == self.block_size:
                open_file.read_pointer = self._block_address(next_block)
            else:
                open_file.read_pointer = address + chunk

            block_offset = 0
            block_id = next_block

        if remaining > 0:
            open_file.read_pointer = start_pointer
            raise FsError(ErrorKind.READ_PAST_END, "读取超过文件尾")

        logger.info(f"读取结束，当前读指针 0x{open_file.read_pointer:X}")
        return ok(data=bytes(data), read_pointer=open_file.read_pointer)

    @_command
    def write_file(self, fd: int, data: bytes, count: Optional[int] = None) -> Dict[str, Any]:
        """
        在文件尾追加写入 count 字节（默认全部数据）

        剩余字节数不小于当前尾块剩余空间时，写满该块并链接一个新分配的块作为新尾块；
        因此恰好写到块边界时，文件总会多出一个空的尾块
        """
        open_file = self.open_files.get(fd)
        file = self.catalog.by_id(open_file.file_id)
        path = self._file_path(file)
        if not file.can_write:
            raise FsError(ErrorKind.PERMISSION_DENIED, f"文件 \"{path}\" 无写入权限")

        if count is None:
            count = len(data)
        elif count < 0:
            raise FsError(ErrorKind.INVALID_ARGUMENT, "写入字节数无效")
        if count > len(data):
            raise FsError(ErrorKind.INVALID_ARGUMENT, "写入字节数超过写入数据长度")

        block_id = self._block_number(file.end_address)
        block_offset = self._block_offset(file.end_address)
        if self.fat.get(block_id) != FAT_EOF:
            raise FsError(ErrorKind.CORRUPTED_TABLE, f"文件 \"{path}\" 的文件尾不在尾块中")

        # 空块求和，加上文件尾块的剩余部分，就是该文件写入时可用的总空间
        free_blocks = self.fat.free_count()
        tail_space = self.block_size - block_offset
        if count > free_blocks * self.block_size + tail_space:
            raise FsError(ErrorKind.NO_SPACE, "磁盘剩余空间不足")
        blocks_needed = 0 if count < tail_space else 1 + (count - tail_space) // self.block_size
        if blocks_needed > free_blocks:
            raise FsError(ErrorKind.NO_SPACE, "磁盘剩余空间不足：写满块边界后没有空块作为文件尾块")

        logger.info(f"开始写入文件 \"{path}\"")

        written = 0
        remaining = count
        while True:
            space = self.block_size - block_offset
            address = self._block_address(block_id) + block_offset

            if remaining >= space:
                # 当前块写不完（恰好写满也属于此情况，需要新开一个空的尾块）
                chunk = space
                next_block = self.fat.allocate_free()
                self.fat.link(block_id, next_block)
            else:
                chunk = remaining
                next_block = FAT_EOF

            piece = bytes(data[written:written + chunk])
            self.disk.write(address, piece)

            logger.debug(f"当前盘块号：{block_id:3}，下一盘块号：{FAT.entry_str(next_block):>3}，"
                         f"写入内容：{binary_to_string(piece)}(H) \"{data_to_text(piece)}\"")

            written += chunk
            remaining -= chunk

            if next_block == FAT_EOF:
                file.end_address = address + chunk
                break

            # 下一块一定从块首开始写
            file.end_address = self._block_address(next_block)
            block_id = next_block
            block_offset = 0

        file.length += written
        logger.info(f"写入结束，当前文件长度 {file.length}")
        return ok(f"写入完成，当前文件信息：{file}", file=file, bytes_written=written)

    # ------------------------- 查询 -------------------------
    @_command
    def read_block(self, block_id: int) -> Dict[str, Any]:
        """读取指定盘块（调试用）"""
        if block_id < 0 or block_id >= self.block_count:
            raise FsError(ErrorKind.INVALID_ARGUMENT, f"无效的块号: {block_id}")
        return ok(block_id=block_id,
                  data=self.disk.read_block(block_id, self.block_size),
                  next_block=self.fat.get(block_id))

    def get_fat_table(self) -> List[int]:
        with self.lock:
            return self.fat.entries()

    def get_filesystem_stats(self) -> Dict[str, Any]:
        """获取文件系统统计信息"""
        with self.lock:
            free_blocks = self.fat.free_count()
            return {
                'disk_size': self.disk_size,
                'block_size': self.block_size,
                'total_blocks': self.block_count,
                'usable_blocks': self.block_count - 1,
                'free_blocks': free_blocks,
                'used_blocks': self.block_count - 1 - free_blocks,
                'storage_remaining': free_blocks * self.block_size,
                'max_file_count_per_user': self.max_file_count_per_user,
                'max_open_file_count': self.max_open_file_count,
                'user_count': len(self.directory),
                'file_count': len(self.catalog),
                'open_file_count': len(self.open_files),
                'users': [user.name for user in self.directory.list()],
                'disk': self.disk.get_disk_info()
            }

    def describe(self) -> str:
        """文件系统信息（文本）"""
        with self.lock:
            users = ', '.join(str(user) for user in self.directory.list())
            return (f"{{ 磁盘剩余空间：{get_size_str(self.storage_remaining())} / {get_size_str(self.disk_size)}，"
                    f"分块大小：{get_size_str(self.block_size)}，"
                    f"每个用户最大文件数：{self.max_file_count_per_user}，"
                    f"最大打开文件数：{self.max_open_file_count}，"
                    f"用户数：{len(self.directory)}，文件数：{len(self.catalog)}，"
                    f"当前打开文件数：{len(self.open_files)}，用户：{{ {users} }}，"
                    f"文件分配表：{self.fat.to_display()} }}")

    def __str__(self) -> str:
        return self.describe()

    def check_consistency(self) -> Dict[str, Any]:
        """
        检查不变量：
        块链无环、互不共享、以 EOF 结束；空闲块数守恒；
        文件尾位于尾块；打开文件项指向现存文件且每个文件至多一个；配额不超限
        """
        with self.lock:
            problems = []
            owner: Dict[int, int] = {}
            user_ids = {user.id for user in self.directory.list()}

            for file in self.catalog.list():
                try:
                    blocks = self.fat.chain(self._block_number(file.start_address))
                except FsError as e:
                    problems.append(f"文件 {file.id}: {e.message}")
                    continue

                for block_id in blocks:
                    if block_id in owner:
                        problems.append(f"盘块 {block_id} 同时属于文件 {owner[block_id]} 和 {file.id}")
                    owner[block_id] = file.id

                # 文件尾按块链位置检查
                if self._block_number(file.end_address) != blocks[-1]:
                    problems.append(f"文件 {file.id}: 文件尾不在尾块 {blocks[-1]} 中")
                expected_length = (len(blocks) - 1) * self.block_size + self._block_offset(file.end_address)
                if file.length != expected_length:
                    problems.append(f"文件 {file.id}: 长度 {file.length} 与块链 {expected_length} 不符")
                if file.user_id not in user_ids:
                    problems.append(f"文件 {file.id}: 所属用户 {file.user_id} 不存在")

            usable = self.block_count - 1
            if self.fat.free_count() + len(owner) != usable:
                problems.append(f"空闲块 {self.fat.free_count()} + 已用块 {len(owner)} != 可用块 {usable}")

            seen_files = set()
            for open_file in self.open_files.list():
                if open_file.file_id not in self.catalog.files:
                    problems.append(f"文件描述符 {open_file.id}: 文件 {open_file.file_id} 不存在")
                if open_file.file_id in seen_files:
                    problems.append(f"文件 {open_file.file_id} 存在多个文件描述符")
                seen_files.add(open_file.file_id)
            if len(self.open_files) > self.max_open_file_count:
                problems.append("打开文件数超过上限")

            for user in self.directory.list():
                if self.catalog.count_user_files(user) > self.max_file_count_per_user:
                    problems.append(f"用户 {user.name} 文件数超过上限")

            if problems:
                result = fail(ErrorKind.CORRUPTED_TABLE, '；'.join(problems))
                result['problems'] = problems
                return result
            return ok("文件系统一致", problems=[])

    # ------------------------- 持久化 -------------------------
    def to_bytes(self) -> bytes:
        """序列化（打开文件表先清空，不进入镜像）"""
        with self.lock:
            self.open_files.clear()
            image = FileSystemImage(
                disk_size=self.disk_size,
                block_size=self.block_size,
                max_file_count_per_user=self.max_file_count_per_user,
                max_open_file_count=self.max_open_file_count,
                disk_data=self.disk.to_bytes(),
                fat_entries=self.fat.entries(),
                users=self.directory.list(),
                files=self.catalog.list(),
                user_ids=self.user_ids.reserved(),
                file_ids=self.file_ids.reserved()
            )
            return encode_image(image)

    @classmethod
    def from_bytes(cls, data: bytes, rng: Optional[random.Random] = None) -> 'FileSystem':
        """反序列化，并按恢复出的用户/文件重新播种标识符分配器"""
        image = decode_image(data)
        fs = cls(image.disk_size, image.block_size,
                 image.max_file_count_per_user, image.max_open_file_count, rng)

        fs.disk = DiskStorage.from_bytes(image.disk_data)
        fs.fat.table = list(image.fat_entries)
        fs.directory.restore(image.users)
        fs.catalog.restore(image.files)

        for user_id in image.user_ids + [user.id for user in image.users]:
            fs.user_ids.reserve(user_id)
        for file_id in image.file_ids + [file.id for file in image.files]:
            fs.file_ids.reserve(file_id)
        return fs

    def save(self, path: str = FS_IMAGE_PATH) -> Dict[str, Any]:
        """将文件系统序列化并写入文件"""
        data = self.to_bytes()
        with open(path, 'wb') as f:
            f.write(data)
        logger.info(f"文件系统已保存到 {path}（{len(data)} 字节）")
        logger.debug(f"镜像内容：{binary_to_string(data)}(H)")
        return ok(f"文件系统已保存到 {path}", path=path, size=len(data))

    @classmethod
    def load(cls, path: str = FS_IMAGE_PATH, rng: Optional[random.Random] = None) -> 'FileSystem':
        with open(path, 'rb') as f:
            data = f.read()
        logger.debug(f"镜像内容：{binary_to_string(data)}(H)")
        fs = cls.from_bytes(data, rng)
        logger.info(f"已从 {path} 加载文件系统（{len(data)} 字节）")
        return fs

    @classmethod
    def load_or_create_demo(cls, path: str = FS_IMAGE_PATH,
                            rng: Optional[random.Random] = None) -> 'FileSystem':
        """加载镜像；镜像不存在或损坏时创建演示文件系统"""
        try:
            return cls.load(path, rng)
        except (OSError, ImageError) as e:
            logger.warning(f"反序列化失败，将重新创建文件系统: {e}")
            return cls.create_demo(rng)

    @classmethod
    def create_demo(cls, rng: Optional[random.Random] = None) -> 'FileSystem':
        """创建带有初始用户和文件的文件系统"""
        fs = cls(rng=rng)

        for user_name in DEMO_USERS:
            fs.directory.create(user_name)

        texts = []
        for user_name, file_name, protection, text in DEMO_FILES:
            permissions = parse_protection(protection)
            fs.catalog.create(fs.directory.by_name(user_name), file_name,
                              bool(permissions & PERM_READ),
                              bool(permissions & PERM_WRITE),
                              bool(permissions & PERM_EXECUTE))
            if text is not None:
                texts.append((user_name, file_name, text))

        for user_name, file_name, text in texts:
            result = fs.open_file(user_name, file_name)
            if not result['success']:
                raise RuntimeError(result['error'])
            fd = result['handle'].id
            result = fs.write_file(fd, text_to_data(text))
            if not result['success']:
                raise RuntimeError(result['error'])
            fs.close_file(fd)

        fs.open_files.clear()
        return fs

# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 命令处理模块
解析一行命令，分发到对应的处理函数，返回带文本输出的结果
单条命令出错只报告错误，不影响后续命令
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from config import *
from .errors import ErrorKind, FsError, fail, ok
from .filesystem import FileSystem
from .utils import data_to_text, parse_protection, split_file_path, text_to_data

logger = logging.getLogger(__name__)


class CommandType(Enum):
    """命令类型"""
    HELP = '?'
    EXIT = 'exit'
    RESTORE = 'restore'
    INFO = 'info'
    DIR = 'dir'
    OPEN = 'open'
    CLOSE = 'close'
    CREATE = 'create'
    DELETE = 'delete'
    READ = 'read'
    WRITE = 'write'
    USERADD = 'useradd'
    USERDEL = 'userdel'


GUIDE = """命令说明：
?                                   显示命令说明
exit                                退出并保存文件系统
restore                             重置文件系统
info                                显示文件系统信息
dir <用户名>                        列文件目录
open <用户名>/<文件名>              打开文件
close <文件描述符>                  关闭文件
create <用户名>/<文件名> <保护字段> 创建文件（保护字段如 110 表示可读可写不可执行）
delete <用户名>/<文件名>            删除文件
read <文件描述符>                   读文件（从文件头开始到文件尾）
read <文件描述符> <字节数>          读文件（从文件头开始读指定字节数）
write <文件描述符> <内容>           写文件（追加）
useradd <用户名>                    创建用户
userdel <用户名>                    删除用户及其全部文件"""


def _parse_fd(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise FsError(ErrorKind.INVALID_ARGUMENT, f"文件描述符 \"{text}\" 无效")


def _unwrap(result: Dict[str, Any]) -> Dict[str, Any]:
    """失败结果转为 FsError 继续向上传递"""
    if not result['success']:
        raise FsError(result['kind'], result['error'])
    return result


class CommandProcessor:
    """
    命令处理器
    持有当前文件系统实例；restore 命令会替换该实例
    """

    def __init__(self, filesystem: FileSystem, image_path: str = FS_IMAGE_PATH,
                 factory: Optional[Callable[[], FileSystem]] = None):
        self.filesystem = filesystem
        self.image_path = image_path
        self.factory = factory or FileSystem.create_demo
        self.exited = False

        # 回调函数（用于执行实际命令）
        self.command_handlers: Dict[CommandType, Callable[[str], Dict[str, Any]]] = {}

        self.register_handler(CommandType.HELP, self.handle_help)
        self.register_handler(CommandType.EXIT, self.handle_exit)
        self.register_handler(CommandType.RESTORE, self.handle_restore)
        self.register_handler(CommandType.INFO, self.handle_info)
        self.register_handler(CommandType.DIR, self.handle_dir)
        self.register_handler(CommandType.OPEN, self.handle_open)
        self.register_handler(CommandType.CLOSE, self.handle_close)
        self.register_handler(CommandType.CREATE, self.handle_create)
        self.register_handler(CommandType.DELETE, self.handle_delete)
        self.register_handler(CommandType.READ, self.handle_read)
        self.register_handler(CommandType.WRITE, self.handle_write)
        self.register_handler(CommandType.USERADD, self.handle_useradd)
        self.register_handler(CommandType.USERDEL, self.handle_userdel)

    def register_handler(self, command_type: CommandType, handler: Callable[[str], Dict[str, Any]]):
        """注册命令处理函数"""
        self.command_handlers[command_type] = handler

    def execute(self, line: str) -> Dict[str, Any]:
        """
        执行一行命令

        Returns:
            成功: {'success': True, 'output': 文本, ...}
            失败: {'success': False, 'kind': 错误类型, 'error': 错误信息}
        """
        line = line.strip()
        if not line:
            return ok(output='')

        cmd, _, args = line.partition(' ')
        try:
            command = CommandType(cmd)
        except ValueError:
            return fail(ErrorKind.INVALID_ARGUMENT, f"命令无效: {cmd}")

        handler = self.command_handlers[command]
        try:
            result = handler(args.strip())
        except FsError as e:
            result = e.to_result()

        if not result['success']:
            logger.warning(f"命令 \"{line}\" 失败: {result['error']}")
        return result

    # ------------------------- 命令处理函数 -------------------------
    def handle_help(self, args: str) -> Dict[str, Any]:
        return ok(output=GUIDE)

    def handle_exit(self, args: str) -> Dict[str, Any]:
        """保存并退出；保存失败时不退出，可以修正后重试"""
        try:
            result = self.filesystem.save(self.image_path)
        except OSError as e:
            raise FsError(ErrorKind.IO_ERROR, f"文件系统保存失败: {e}")
        self.exited = True
        logger.info("文件系统已关闭并保存")
        return ok(output=result['message'], exited=True)

    def handle_restore(self, args: str) -> Dict[str, Any]:
        """丢弃当前状态，重新创建文件系统（标识符分配器随新实例重置）"""
        self.filesystem = self.factory()
        return ok(output=f"文件系统已创建并初始化：{self.filesystem}")

    def handle_info(self, args: str) -> Dict[str, Any]:
        return ok(output=f"文件系统信息：{self.filesystem}")

    def handle_dir(self, args: str) -> Dict[str, Any]:
        result = _unwrap(self.filesystem.list_files(args))
        lines = ['['] + [f"{file}," for file in result['files']] + [']']
        return ok(output='\n'.join(lines))

    def handle_open(self, args: str) -> Dict[str, Any]:
        user_name, file_name = split_file_path(args)
        result = _unwrap(self.filesystem.open_file(user_name, file_name))
        return ok(output=result['message'], fd=result['handle'].id)

    def handle_close(self, args: str) -> Dict[str, Any]:
        fd = _parse_fd(args)
        result = _unwrap(self.filesystem.close_file(fd))
        return ok(output=result['message'])

    def handle_create(self, args: str) -> Dict[str, Any]:
        """创建文件并打开"""
        parts = args.rsplit(maxsplit=1)
        if len(parts) != 2:
            raise FsError(ErrorKind.INVALID_ARGUMENT, "参数无效：create <用户名>/<文件名> <保护字段>")

        user_name, file_name = split_file_path(parts[0])
        permissions = parse_protection(parts[1])
        created = _unwrap(self.filesystem.create_file(
            user_name, file_name,
            bool(permissions & PERM_READ),
            bool(permissions & PERM_WRITE),
            bool(permissions & PERM_EXECUTE)
        ))
        opened = _unwrap(self.filesystem.open_file(user_name, file_name))
        output = (f"文件 \"{user_name}/{file_name}\" 已创建：{created['file']}\n"
                  f"新文件已打开：{opened['handle']}")
        return ok(output=output, fd=opened['handle'].id)

    def handle_delete(self, args: str) -> Dict[str, Any]:
        user_name, file_name = split_file_path(args)
        result = _unwrap(self.filesystem.delete_file(user_name, file_name))
        return ok(output=result['message'])

    def handle_read(self, args: str) -> Dict[str, Any]:
        """从文件头开始读取；省略字节数时读到文件尾"""
        parts = args.split()
        if len(parts) not in (1, 2):
            raise FsError(ErrorKind.INVALID_ARGUMENT, "参数无效：read <文件描述符> [字节数]")

        fd = _parse_fd(parts[0])
        _unwrap(self.filesystem.rewind(fd))
        if len(parts) == 2:
            try:
                count = int(parts[1])
            except ValueError:
                raise FsError(ErrorKind.INVALID_ARGUMENT, f"字节数 \"{parts[1]}\" 无效")
        else:
            count = _unwrap(self.filesystem.get_handle(fd))['file'].length

        result = _unwrap(self.filesystem.read_file(fd, count))
        return ok(output=data_to_text(result['data']), data=result['data'])

    def handle_write(self, args: str) -> Dict[str, Any]:
        fd_text, _, text = args.partition(' ')
        text = text.strip()
        if not text:
            raise FsError(ErrorKind.INVALID_ARGUMENT, "参数无效：write <文件描述符> <内容>")

        fd = _parse_fd(fd_text)
        data = text_to_data(text)
        result = _unwrap(self.filesystem.write_file(fd, data, len(data)))
        return ok(output=result['message'])

    def handle_useradd(self, args: str) -> Dict[str, Any]:
        result = _unwrap(self.filesystem.create_user(args))
        return ok(output=result['message'])

    def handle_userdel(self, args: str) -> Dict[str, Any]:
        result = _unwrap(self.filesystem.delete_user(args))
        return ok(output=result['message'])

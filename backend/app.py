# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - Flask后端应用
提供RESTful API接口和WebSocket实时通信
"""

import logging
import os
import sys
from enum import Enum

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO, emit

# 添加路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import *  # noqa: E402
from fatfs import CommandProcessor, ErrorKind, FileSystem  # noqa: E402
from fatfs.utils import (data_to_text, parse_protection, split_file_path,  # noqa: E402
                         text_to_data)
from fatfs.errors import FsError, fail  # noqa: E402

logger = logging.getLogger(__name__)


# 创建Flask应用 (纯API模式)
app = Flask(__name__)
app.config['SECRET_KEY'] = 'fatfs_simulator'
CORS(app, resources={r"/api/*": {"origins": "*"}})
socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

# 命令处理器持有当前文件系统实例（restore 会替换它）
processor = CommandProcessor(FileSystem.create_demo(), image_path=FS_IMAGE_PATH)

# 错误类型对应的HTTP状态码
STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.ALREADY_OPEN: 409,
    ErrorKind.QUOTA_EXCEEDED: 409,
    ErrorKind.TOO_MANY_OPEN_FILES: 409,
    ErrorKind.NO_SPACE: 507,
    ErrorKind.READ_PAST_END: 416,
    ErrorKind.CORRUPTED_TABLE: 500,
    ErrorKind.IO_ERROR: 500,
}


def filesystem() -> FileSystem:
    return processor.filesystem


def _jsonable(value):
    """实体对象、字节等转换为可序列化的值"""
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


def respond(result: dict, event: str = None):
    """返回结果；成功时通过WebSocket广播事件"""
    body = _jsonable(result)
    if not result.get('success', True):
        return jsonify(body), STATUS_CODES.get(result.get('kind'), 400)
    if event:
        socketio.emit(event, body)
    return jsonify(body)


def _request_data() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _text_field(key: str, default: str = '') -> str:
    """取请求体中的字符串字段"""
    value = _request_data().get(key, default)
    if not isinstance(value, str):
        raise FsError(ErrorKind.INVALID_ARGUMENT, f"字段 {key} 必须是字符串")
    return value


@app.errorhandler(FsError)
def handle_fs_error(e):
    return respond(e.to_result())


# ==================== 用户API ====================
@app.route('/api/users', methods=['GET'])
def list_users():
    """获取用户列表"""
    return respond(filesystem().list_users())


@app.route('/api/users', methods=['POST'])
def create_user():
    """创建用户"""
    name = _text_field('name')
    return respond(filesystem().create_user(name), 'user_created')


@app.route('/api/users/<user_name>', methods=['DELETE'])
def delete_user(user_name):
    """删除用户及其全部文件"""
    return respond(filesystem().delete_user(user_name), 'user_deleted')


@app.route('/api/users/<user_name>/files', methods=['GET'])
def list_files(user_name):
    """列文件目录"""
    return respond(filesystem().list_files(user_name))


# ==================== 文件API ====================
@app.route('/api/files', methods=['POST'])
def create_file():
    """创建文件（同名文件先删除）"""
    user_name, file_name = split_file_path(_text_field('path'))
    permissions = parse_protection(_text_field('protection', '110'))

    result = filesystem().create_file(
        user_name, file_name,
        bool(permissions & PERM_READ),
        bool(permissions & PERM_WRITE),
        bool(permissions & PERM_EXECUTE)
    )
    return respond(result, 'file_created')


@app.route('/api/files/<user_name>/<file_name>', methods=['GET'])
def file_info(user_name, file_name):
    """获取文件信息"""
    return respond(filesystem().get_file_info(user_name, file_name))


@app.route('/api/files/<user_name>/<file_name>', methods=['DELETE'])
def delete_file(user_name, file_name):
    """删除文件"""
    return respond(filesystem().delete_file(user_name, file_name), 'file_deleted')


@app.route('/api/files/<user_name>/<file_name>/open', methods=['POST'])
def open_file(user_name, file_name):
    """打开文件"""
    return respond(filesystem().open_file(user_name, file_name), 'file_opened')


# ==================== 文件描述符API ====================
@app.route('/api/handles/<int:fd>/close', methods=['POST'])
def close_file(fd):
    """关闭文件"""
    return respond(filesystem().close_file(fd), 'file_closed')


@app.route('/api/handles/<int:fd>/read', methods=['GET'])
def read_file(fd):
    """
    读文件
    默认从文件头开始读到文件尾；from_start=0 时从当前读指针继续读
    """
    fs = filesystem()
    from_start = request.args.get('from_start', 1, type=int)
    if from_start:
        result = fs.rewind(fd)
        if not result['success']:
            return respond(result)

    count = request.args.get('count', type=int)
    if count is None:
        if not from_start:
            return respond(fail(ErrorKind.INVALID_ARGUMENT, "从读指针继续读时必须给出 count"))
        handle = fs.get_handle(fd)
        if not handle['success']:
            return respond(handle)
        count = handle['file'].length

    result = fs.read_file(fd, count)
    if result['success']:
        result['content'] = data_to_text(result['data'])
    return respond(result)


@app.route('/api/handles/<int:fd>/write', methods=['POST'])
def write_file(fd):
    """追加写入文本"""
    text = _text_field('text')
    return respond(filesystem().write_file(fd, text_to_data(text)), 'file_written')


# ==================== 磁盘与FAT API ====================
@app.route('/api/stats', methods=['GET'])
def get_stats():
    """获取文件系统统计信息"""
    return jsonify(filesystem().get_filesystem_stats())


@app.route('/api/fat', methods=['GET'])
def get_fat():
    """获取文件分配表"""
    entries = filesystem().get_fat_table()
    return jsonify({
        'entries': entries,
        'total': len(entries),
        'free': sum(1 for i, entry in enumerate(entries) if entry == FAT_FREE and i != RESERVED_BLOCK)
    })


@app.route('/api/disk/block/<int:block_id>', methods=['GET'])
def read_block(block_id):
    """读取指定磁盘块"""
    result = filesystem().read_block(block_id)
    if result['success']:
        result['text'] = data_to_text(result['data'])
    return respond(result)


@app.route('/api/disk/log', methods=['GET'])
def disk_log():
    """获取磁盘操作日志"""
    return jsonify({'log': filesystem().disk.get_operation_log()})


@app.route('/api/check', methods=['GET'])
def check_consistency():
    """检查文件系统一致性"""
    return respond(filesystem().check_consistency())


# ==================== 命令与持久化API ====================
@app.route('/api/command', methods=['POST'])
def run_command():
    """执行一行控制台命令"""
    line = _text_field('line')
    result = processor.execute(line)
    return respond(result, 'command_executed')


@app.route('/api/save', methods=['POST'])
def save_filesystem():
    """保存文件系统镜像（打开文件表会被清空）"""
    try:
        result = filesystem().save(processor.image_path)
    except OSError as e:
        logger.error(f"保存镜像失败: {e}")
        return respond(fail(ErrorKind.IO_ERROR, f"文件系统保存失败: {e}"))
    return respond(result, 'filesystem_saved')


@app.route('/api/restore', methods=['POST'])
def restore_filesystem():
    """丢弃当前状态，重新创建文件系统"""
    result = processor.execute('restore')
    return respond(result, 'filesystem_restored')


# ==================== WebSocket事件 ====================
@socketio.on('connect')
def handle_connect():
    """客户端连接"""
    emit('connected', {'message': '已连接到服务器'})


@socketio.on('get_status')
def handle_get_status():
    """获取系统状态"""
    emit('status', filesystem().get_filesystem_stats())


# ==================== 主程序入口 ====================
def main():
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    processor.filesystem = FileSystem.load_or_create_demo(processor.image_path)
    processor.filesystem.open_files.clear()

    print("=" * 50)
    print("FAT文件系统模拟器 API 服务")
    print("=" * 50)
    print(f"磁盘大小: {DISK_SIZE} 字节 ({BLOCK_COUNT} 块 x {BLOCK_SIZE} 字节)")
    print(f"每个用户最大文件数: {MAX_FILE_COUNT_PER_USER}，最大打开文件数: {MAX_OPEN_FILE_COUNT}")
    print(f"API/SocketIO: http://localhost:{API_PORT}")
    print("=" * 50)

    try:
        socketio.run(app, host=API_HOST, port=API_PORT, debug=False, allow_unsafe_werkzeug=True)
    finally:
        filesystem().save(processor.image_path)


if __name__ == '__main__':
    main()

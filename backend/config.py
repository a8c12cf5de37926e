# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 配置文件
模拟磁盘、文件分配表和文件系统的全局配置
"""

# ==================== 磁盘配置 ====================
BLOCK_SIZE = 4           # 每个盘块大小（字节）
DISK_SIZE = 256          # 总磁盘大小（字节），必须是块大小的整数倍
BLOCK_COUNT = DISK_SIZE // BLOCK_SIZE  # 盘块数量

# ==================== 文件分配表 ====================
RESERVED_BLOCK = 0       # 0 号块永久预留，不参与分配
FAT_FREE = 0             # 空闲块
FAT_EOF = -1             # 文件尾块

# ==================== 配额配置 ====================
MAX_FILE_COUNT_PER_USER = 10   # 每个用户最大文件数
MAX_OPEN_FILE_COUNT = 16       # 最大打开文件数

# ==================== 文件权限 ====================
PERM_READ = 0b100        # 读权限
PERM_WRITE = 0b010       # 写权限
PERM_EXECUTE = 0b001     # 执行权限

# ==================== 文本编码 ====================
# 每个代码单元固定 2 字节，文件长度按原始字节计算
TEXT_ENCODING = 'utf-16-le'

# ==================== 持久化 ====================
IMAGE_MAGIC = b'FATS'
IMAGE_VERSION = 1
FS_IMAGE_PATH = "filesys.bin"  # 文件系统镜像路径

# ==================== 日志配置 ====================
OPERATION_LOG_SIZE = 100  # 磁盘操作日志保留条数
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# ==================== API配置 ====================
API_HOST = '0.0.0.0'
API_PORT = 3456

# ==================== 演示数据 ====================
DEMO_USERS = ['user1', 'user2', 'user3', 'user4',
              'user5', 'user6', 'user7', 'user8']

# (用户, 文件名, 保护字段, 写入内容)；内容为 None 表示只创建不写入
DEMO_FILES = [
    ('user1', 'file1', '110', '文字TEXTtext123'),
    ('user2', 'file1', '111', 'yetANOTHERtext'),
    ('user1', 'file2', '111', 'anotherTEXT'),
    ('user1', 'file3', '001', None),
    ('user1', 'file3', '001', None),  # 重复创建，验证替换语义
    ('user1', 'file4', '111', 'LongText1234567890987654321!@#$%^&*()abcdefghijk'),
]

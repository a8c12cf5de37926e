# -*- coding: utf-8 -*-
"""
FAT文件系统模拟器 - 控制台
逐行读取命令并执行；exit 时保存文件系统镜像
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import *  # noqa: E402,F401
from fatfs import CommandProcessor, FileSystem  # noqa: E402


def run(processor: CommandProcessor, stdin=sys.stdin, stdout=sys.stdout):
    """交互循环：单条命令出错只报告，不终止循环"""
    while not processor.exited:
        stdout.write('> ')
        stdout.flush()
        line = stdin.readline()
        eof = not line
        if eof:
            # 输入结束时同样保存，保存失败也不再读取
            line = 'exit'

        result = processor.execute(line)
        if result['success']:
            if result.get('output'):
                print(result['output'], file=stdout)
        else:
            print(f"错误：{result['error']}", file=stdout)
        print(file=stdout)
        if eof:
            break


def main(argv=None):
    parser = argparse.ArgumentParser(description='FAT文件系统模拟器')
    parser.add_argument('--image', default=FS_IMAGE_PATH, help='文件系统镜像路径')
    parser.add_argument('--fresh', action='store_true', help='忽略已有镜像，创建演示文件系统')
    parser.add_argument('--verbose', '-v', action='store_true', help='输出逐块读写日志')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    if args.fresh:
        filesystem = FileSystem.create_demo()
    else:
        filesystem = FileSystem.load_or_create_demo(args.image)
    # 打开文件表不跨进程保留
    filesystem.open_files.clear()

    print("=" * 50)
    print("FAT文件系统模拟器")
    print("=" * 50)
    print(f"文件系统已加载或新建：{filesystem}")
    print()

    processor = CommandProcessor(filesystem, image_path=args.image)
    print(processor.execute('?')['output'])
    print()
    run(processor)


if __name__ == '__main__':
    main()

"""
地址转换模拟器 - 主程序入口

模拟三级地址转换：
- TLB (8 项，FIFO 替换)
- 页表 (256 页，缺页时按 page mod 16 放置)
- Cache (16 块，按物理帧记录，FIFO 替换)

使用方法:
    uv run main.py              # TUI
    uv run main.py --console    # 标准输入循环
"""
import argparse
import logging
import os
import sys

from memory_console import format_stats, run_console
from memory_model import Simulator


def main(argv=None):
    parser = argparse.ArgumentParser(description='MMU Translation Simulator: TLB -> Page Table -> Cache')
    parser.add_argument('--console', dest='console', action='store_true', help='read addresses from stdin instead of running the TUI')
    parser.add_argument('--debug', '-D', dest='debug', action='store_true', help='output debug messages')
    parser.add_argument('--log', type=str, dest='log', default='/tmp', help='logging output directory')
    args = parser.parse_args(argv)
    if os.path.isfile(args.log):
        parser.error('--log must point to directory, not file')
    os.makedirs(args.log, exist_ok=True)
    logging.basicConfig(
        filename=os.path.join(args.log, '{}.log'.format(os.path.basename(__file__))),
        format='%(message)s',
        level=(logging.DEBUG if args.debug else logging.INFO),
    )
    logging.debug('args : {}'.format(args))

    simulator = Simulator()
    if args.console:
        run_console(simulator, sys.stdin)
        return 0

    # TUI 依赖只在需要时导入
    from memory_ui import MMUSimApp
    app = MMUSimApp(simulator)
    app.run()
    print(format_stats(simulator.stats))
    return 0


if __name__ == "__main__":
    sys.exit(main())

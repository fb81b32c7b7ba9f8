"""
控制台输入循环与文本报告

每行读取一个有符号整数，-1 退出，超出 [0, 65535] 的地址只报告错误，
不会交给地址转换核心。
"""
import logging

from memory_model import VIRTUAL_ADDRESS_SPACE

EXIT_SENTINEL = -1
PROMPT = "\nEnter a virtual address (0 - 65535, -1 to exit): "


def parse_address(text):
    return int(text.strip())


def is_valid_address(value):
    return 0 <= value < VIRTUAL_ADDRESS_SPACE


def format_trace(result):
    """生成单次转换的跟踪文本"""
    steps = ["TLB Hit." if result["tlb_outcome"] == "Hit" else "TLB Miss."]
    if result["fault_occurred"]:
        steps.append("Page Fault.")
    steps.append("Cache Hit." if result["cache_outcome"] == "Hit" else "Cache Miss.")
    return "\n".join([
        " ".join(steps),
        f"Virtual Address: {result['virtual_address']}",
        f"Page Number: {result['page_number']}, Offset: {result['offset']}",
        f"Physical Address: {result['physical_address']}",
    ])


def format_stats(stats):
    return "\n".join([
        "--- Simulation Stats ---",
        f"TLB Hits: {stats.tlb_hits}, TLB Misses: {stats.tlb_misses}",
        f"Cache Hits: {stats.cache_hits}, Cache Misses: {stats.cache_misses}",
        f"Page Faults: {stats.page_faults}",
    ])


def run_console(simulator, lines, write=print):
    """
    驱动交互循环

    Args:
        simulator: memory_model.Simulator 实例
        lines: 可迭代的输入行（例如 sys.stdin）
        write: 输出函数

    Returns:
        已成功转换的地址数
    """
    translated = 0
    write(PROMPT)
    for line in lines:
        if not line.strip():
            continue
        try:
            value = parse_address(line)
        except ValueError:
            write(f"Error: '{line.strip()}' is not an integer.")
            write(PROMPT)
            continue

        if value == EXIT_SENTINEL:
            break
        if not is_valid_address(value):
            logging.info('rejected out-of-range address {}'.format(value))
            write("Error: Enter address between 0 - 65535 only.")
            write(PROMPT)
            continue

        write(format_trace(simulator.translate(value)))
        translated += 1
        write(PROMPT)

    write(format_stats(simulator.stats))
    return translated

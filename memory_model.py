import logging
import random
from collections import deque

# 地址空间配置
VIRTUAL_ADDRESS_SPACE = 65536   # 2^16 = 64 KB 虚拟内存
PAGE_SIZE = 256                 # 每页 256 字节
NUM_PAGES = 256                 # 虚拟页数
NUM_FRAMES = 16                 # 4 KB 主存 / 256 = 16 帧
TLB_SIZE = 8                    # TLB 条目数
CACHE_SIZE = 16                 # Cache 块数

HISTORY_LIMIT = 60


class PageTable:

    def __init__(self, num_pages=NUM_PAGES, num_frames=NUM_FRAMES):
        self.num_pages = num_pages
        self.num_frames = num_frames
        # 前 num_frames 页恒等映射到对应帧，其余页未装入
        self.table = [page if page < num_frames else None for page in range(num_pages)]

    def lookup(self, page_number):
        return self.table[page_number]

    """写入映射，不检查该帧是否已被其他页占用"""
    def install(self, page_number, frame_number):
        self.table[page_number] = frame_number

    def mapped_pages(self, frame_number):
        return [page for page, frame in self.get_snapshot().items() if frame == frame_number]

    def get_snapshot(self):
        return {page: frame for page, frame in enumerate(self.table) if frame is not None}


class Statistics:

    def __init__(self):
        self.tlb_hits = 0
        self.tlb_misses = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.page_faults = 0
        self.total_count = 0

    @staticmethod
    def _rate(count, total):
        return (count / total) * 100 if total > 0 else 0

    @property
    def tlb_hit_rate(self):
        return self._rate(self.tlb_hits, self.tlb_hits + self.tlb_misses)

    @property
    def cache_hit_rate(self):
        return self._rate(self.cache_hits, self.cache_hits + self.cache_misses)

    @property
    def fault_rate(self):
        return self._rate(self.page_faults, self.total_count)

    def snapshot(self):
        return {
            "tlb_hits": self.tlb_hits,
            "tlb_misses": self.tlb_misses,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "page_faults": self.page_faults,
            "total_count": self.total_count,
        }


class TLB:

    def __init__(self, stats, size=TLB_SIZE):
        self.stats = stats
        self.size = size
        self.slots = [None] * size  # (page, frame)
        self.cursor = 0             # FIFO 替换指针

    """顺序查找，第一个匹配的槽位命中"""
    def lookup(self, page_number):
        for entry in self.slots:
            if entry is not None and entry[0] == page_number:
                self.stats.tlb_hits += 1
                return entry[1]
        self.stats.tlb_misses += 1
        return None

    """写入指针所在槽位，不去重"""
    def insert(self, page_number, frame_number):
        victim = self.slots[self.cursor]
        if victim is not None:
            logging.debug('TLB evict slot {} : page {} -> frame {}'.format(self.cursor, *victim))
        self.slots[self.cursor] = (page_number, frame_number)
        self.cursor = (self.cursor + 1) % self.size

    def predict_next_victim(self):
        return self.cursor

    def get_snapshot(self):
        return [
            None if entry is None else {"page": entry[0], "meta": f"FR:{entry[1]}"}
            for entry in self.slots
        ]


class FrameCache:

    def __init__(self, stats, size=CACHE_SIZE):
        self.stats = stats
        self.size = size
        self.blocks = [None] * size  # 一帧即一块
        self.cursor = 0

    def probe(self, frame_number):
        for block in self.blocks:
            if block == frame_number:
                self.stats.cache_hits += 1
                return "Hit"
        self.stats.cache_misses += 1
        return "Miss"

    def record(self, frame_number):
        self.blocks[self.cursor] = frame_number
        self.cursor = (self.cursor + 1) % self.size

    def predict_next_victim(self):
        return self.cursor

    def get_snapshot(self):
        return [
            None if block is None else {"frame": block, "meta": "BLK"}
            for block in self.blocks
        ]


class PageFaultHandler:

    def __init__(self, page_table, stats):
        self.page_table = page_table
        self.stats = stats

    """静态放置：frame = page mod 帧数，不选择牺牲页也不使旧映射失效"""
    def resolve(self, page_number):
        self.stats.page_faults += 1
        frame_number = page_number % self.page_table.num_frames
        aliases = [p for p in self.page_table.mapped_pages(frame_number) if p != page_number]
        if aliases:
            logging.debug('page {} aliases frame {} with pages {}'.format(page_number, frame_number, aliases))
        self.page_table.install(page_number, frame_number)
        return frame_number


class AddressTranslator:

    def __init__(self, tlb, page_table, fault_handler, cache, stats):
        self.tlb = tlb
        self.page_table = page_table
        self.fault_handler = fault_handler
        self.cache = cache
        self.stats = stats

    def translate(self, virtual_address):
        """
        完成一次虚拟地址到物理地址的转换

        TLB -> 页表（缺页时调用 PageFaultHandler）-> Cache，
        每一步都会更新统计数据和 FIFO 状态。
        """
        self.stats.total_count += 1
        page_number = (virtual_address >> 8) & 0xFF
        offset = virtual_address & 0xFF

        fault_occurred = False
        frame_number = self.tlb.lookup(page_number)
        if frame_number is not None:
            tlb_outcome = "Hit"
        else:
            tlb_outcome = "Miss"
            frame_number = self.page_table.lookup(page_number)
            if frame_number is None:
                fault_occurred = True
                frame_number = self.fault_handler.resolve(page_number)
            self.tlb.insert(page_number, frame_number)

        # 1 帧 = 1 块
        cache_outcome = self.cache.probe(frame_number)
        if cache_outcome == "Miss":
            self.cache.record(frame_number)

        physical_address = (frame_number << 8) | offset
        logging.debug('translate({}): page={} offset={} tlb={} fault={} cache={} -> {}'.format(
            virtual_address, page_number, offset, tlb_outcome, fault_occurred, cache_outcome, physical_address))
        return {
            "virtual_address": virtual_address,
            "page_number": page_number,
            "offset": offset,
            "tlb_outcome": tlb_outcome,
            "fault_occurred": fault_occurred,
            "cache_outcome": cache_outcome,
            "frame_number": frame_number,
            "physical_address": physical_address,
        }


class Simulator:

    def __init__(self, num_pages=NUM_PAGES, num_frames=NUM_FRAMES, tlb_size=TLB_SIZE, cache_size=CACHE_SIZE):
        self.num_pages = num_pages
        self.num_frames = num_frames
        self.tlb_size = tlb_size
        self.cache_size = cache_size
        self.mode = "MANUAL"
        self.sequence = []
        self.reset()

    """重新初始化所有结构和统计数据"""
    def reset(self):
        self.stats = Statistics()
        self.page_table = PageTable(self.num_pages, self.num_frames)
        self.tlb = TLB(self.stats, self.tlb_size)
        self.cache = FrameCache(self.stats, self.cache_size)
        self.fault_handler = PageFaultHandler(self.page_table, self.stats)
        self.translator = AddressTranslator(self.tlb, self.page_table, self.fault_handler, self.cache, self.stats)
        self.history = deque(maxlen=HISTORY_LIMIT)
        self.current_time = 0
        logging.debug('simulator reset: pages={} frames={} tlb={} cache={}'.format(
            self.num_pages, self.num_frames, self.tlb_size, self.cache_size))

    def translate(self, virtual_address):
        result = self.translator.translate(virtual_address)
        # 命中率趋势点，供 UI 绘图
        self.history.append({
            "step": self.stats.total_count,
            "virtual_address": virtual_address,
            "tlb_hit_rate": self.stats.tlb_hit_rate,
            "cache_hit_rate": self.stats.cache_hit_rate,
        })
        return result

    def load_sequence(self, addresses, mode="AUTO"):
        self.mode = mode
        self.sequence = list(addresses)
        self.current_time = 0

    """按序列执行一步，序列结束返回 None"""
    def step(self):
        if self.current_time >= len(self.sequence):
            return None
        address = self.sequence[self.current_time]
        self.current_time += 1
        return self.translate(address)

    """页 4 与页 20 共享帧 4 的演示序列"""
    def load_alias_demo(self):
        pages = [4, 20, 4, 20]
        self.load_sequence([p * PAGE_SIZE for p in pages], mode="ALIAS")

    def generate_addresses(self, count, hot_pages=(0, 24), cold_pages=(24, 256)):
        addresses = []
        # 模拟局部性原理：95% 访问热区页面，5% 访问冷区页面
        for _ in range(count):
            if random.random() < 0.95:
                page = random.randint(hot_pages[0], hot_pages[1] - 1)
            else:
                page = random.randint(cold_pages[0], cold_pages[1] - 1)
            addresses.append(page * PAGE_SIZE + random.randint(0, PAGE_SIZE - 1))
        return addresses

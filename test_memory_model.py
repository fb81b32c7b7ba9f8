"""
地址转换核心测试 - 不依赖 TUI
"""
import random

import pytest

from memory_model import (
    FrameCache,
    PageFaultHandler,
    PageTable,
    Simulator,
    Statistics,
    TLB,
)


@pytest.fixture
def sim():
    return Simulator()


def test_decomposition_and_offset_preserved(sim):
    for v in [0, 1, 255, 256, 4095, 5120, 33000, 65535]:
        res = sim.translate(v)
        assert res["page_number"] == v >> 8
        assert res["offset"] == v & 0xFF
        assert res["physical_address"] & 0xFF == res["offset"]
        assert res["physical_address"] == (res["frame_number"] << 8) | res["offset"]


def test_preloaded_pages_never_fault(sim):
    for page in range(16):
        res = sim.translate(page * 256)
        assert res["fault_occurred"] is False
        assert res["frame_number"] == page
    assert sim.stats.page_faults == 0


def test_first_access_above_preload_faults_once(sim):
    for page in range(16, 256):
        res = sim.translate(page * 256 + 7)
        assert res["fault_occurred"] is True
        assert res["frame_number"] == page % 16
    assert sim.stats.page_faults == 240


def test_scenario_a_repeat_hits(sim):
    first = sim.translate(0)
    assert first["tlb_outcome"] == "Miss"
    assert first["fault_occurred"] is False
    assert first["cache_outcome"] == "Miss"
    assert first["physical_address"] == 0

    second = sim.translate(0)
    assert second["tlb_outcome"] == "Hit"
    assert second["cache_outcome"] == "Hit"
    assert second["physical_address"] == 0
    assert sim.stats.tlb_hits == 1


def test_scenario_b_page_fault(sim):
    res = sim.translate(5120)
    assert res["page_number"] == 20
    assert res["offset"] == 0
    assert res["tlb_outcome"] == "Miss"
    assert res["fault_occurred"] is True
    assert res["frame_number"] == 4
    assert res["cache_outcome"] == "Miss"
    assert res["physical_address"] == 1024
    assert sim.stats.page_faults == 1


def test_scenario_c_frame_aliasing_is_kept(sim):
    sim.translate(4 * 256)
    alias = sim.translate(20 * 256)
    assert alias["fault_occurred"] is True
    assert alias["frame_number"] == 4

    again = sim.translate(4 * 256 + 9)
    assert again["frame_number"] == 4
    assert again["physical_address"] == (4 << 8) | 9
    assert sim.page_table.lookup(4) == 4
    assert sim.page_table.lookup(20) == 4
    assert sim.page_table.mapped_pages(4) == [4, 20]


def test_tlb_fifo_evicts_oldest():
    stats = Statistics()
    tlb = TLB(stats, size=8)
    for page in range(9):
        tlb.insert(page, page)

    assert tlb.lookup(0) is None
    for page in range(1, 9):
        assert tlb.lookup(page) == page
    assert stats.tlb_misses == 1
    assert stats.tlb_hits == 8


def test_tlb_keeps_duplicates_and_first_slot_wins():
    stats = Statistics()
    tlb = TLB(stats, size=8)
    tlb.insert(3, 1)
    tlb.insert(3, 2)
    assert tlb.lookup(3) == 1
    assert [entry for entry in tlb.slots if entry is not None] == [(3, 1), (3, 2)]
    assert tlb.predict_next_victim() == 2


def test_tlb_lookup_does_not_reorder():
    stats = Statistics()
    tlb = TLB(stats, size=2)
    tlb.insert(1, 1)
    tlb.insert(2, 2)
    tlb.lookup(1)
    tlb.insert(3, 3)
    # 尽管页 1 刚被访问，仍按插入顺序被替换
    assert tlb.lookup(1) is None
    assert tlb.lookup(2) == 2


def test_frame_cache_fifo_evicts_oldest():
    stats = Statistics()
    cache = FrameCache(stats, size=16)
    for frame in range(17):
        cache.record(frame)

    assert cache.probe(0) == "Miss"
    for frame in range(1, 17):
        assert cache.probe(frame) == "Hit"
    assert stats.cache_misses == 1
    assert stats.cache_hits == 16


def test_frame_cache_cursor_independent_of_tlb(sim):
    sim.translate(0)
    sim.translate(0)
    assert sim.tlb.cursor == 1
    assert sim.cache.cursor == 1
    sim.tlb.insert(99, 3)
    assert sim.tlb.cursor == 2
    assert sim.cache.cursor == 1


def test_page_table_initial_state():
    table = PageTable()
    assert [table.lookup(p) for p in range(16)] == list(range(16))
    assert all(table.lookup(p) is None for p in range(16, 256))
    table.install(200, 3)
    assert table.lookup(200) == 3
    assert table.lookup(3) == 3


def test_fault_handler_installs_before_returning():
    stats = Statistics()
    table = PageTable()
    handler = PageFaultHandler(table, stats)
    assert handler.resolve(33) == 1
    assert table.lookup(33) == 1
    assert stats.page_faults == 1


def test_determinism_across_instances():
    rng = random.Random(7)
    addresses = [rng.randint(0, 65535) for _ in range(400)]
    a, b = Simulator(), Simulator()
    outcomes_a = [(r["tlb_outcome"], r["fault_occurred"], r["cache_outcome"]) for r in map(a.translate, addresses)]
    outcomes_b = [(r["tlb_outcome"], r["fault_occurred"], r["cache_outcome"]) for r in map(b.translate, addresses)]
    assert outcomes_a == outcomes_b
    assert a.stats.snapshot() == b.stats.snapshot()


def test_reset_clears_state(sim):
    sim.translate(5120)
    sim.reset()
    assert sim.stats.snapshot() == Statistics().snapshot()
    assert sim.page_table.lookup(20) is None
    assert sim.tlb.cursor == 0
    assert all(block is None for block in sim.cache.blocks)


def test_statistics_rates(sim):
    assert sim.stats.tlb_hit_rate == 0
    sim.translate(0)
    sim.translate(0)
    assert sim.stats.tlb_hit_rate == 50
    assert sim.stats.cache_hit_rate == 50
    assert sim.stats.fault_rate == 0
    assert sim.stats.total_count == 2


def test_step_runs_loaded_sequence(sim):
    sim.load_alias_demo()
    results = []
    while True:
        res = sim.step()
        if res is None:
            break
        results.append(res)
    assert [r["page_number"] for r in results] == [4, 20, 4, 20]
    assert [r["fault_occurred"] for r in results] == [False, True, False, False]
    assert all(r["frame_number"] == 4 for r in results)
    assert sim.mode == "ALIAS"


def test_generate_addresses_in_range(sim):
    addresses = sim.generate_addresses(200)
    assert len(addresses) == 200
    assert all(0 <= a <= 65535 for a in addresses)


def test_slot_snapshots(sim):
    sim.translate(0)
    tlb_view = sim.tlb.get_snapshot()
    assert tlb_view[0]["page"] == 0
    assert tlb_view[1] is None
    assert tlb_view[0] == {"page": 0, "meta": "FR:0"}
    cache_view = sim.cache.get_snapshot()
    assert cache_view[0] == {"frame": 0, "meta": "BLK"}
    assert cache_view[1] is None


def test_history_is_bounded(sim):
    for v in range(100):
        sim.translate(v * 256)
    assert len(sim.history) == 60
    assert sim.history[0]["step"] == 41
    assert sim.history[-1]["virtual_address"] == 99 * 256
    assert sim.history[-1]["tlb_hit_rate"] == sim.stats.tlb_hit_rate
    assert sim.history[-1]["cache_hit_rate"] == sim.stats.cache_hit_rate


def test_page_table_snapshot_lists_mapped_pages(sim):
    assert sim.page_table.get_snapshot() == {page: page for page in range(16)}
    sim.translate(20 * 256)
    snapshot = sim.page_table.get_snapshot()
    assert snapshot[20] == 4
    assert snapshot[4] == 4
    assert len(snapshot) == 17


def test_sequence_modes(sim):
    assert sim.mode == "MANUAL"
    sim.load_sequence([0, 256])
    assert sim.mode == "AUTO"
    sim.load_alias_demo()
    assert sim.mode == "ALIAS"

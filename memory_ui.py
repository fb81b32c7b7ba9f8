from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import Footer, Static, Button, RichLog, Label, Input
from textual_plotext import PlotextPlot

from memory_console import EXIT_SENTINEL, parse_address, is_valid_address
from memory_model import Simulator

AUTO_RUN_LENGTH = 500


class StatCard(Static):
    """
    统计卡片组件

    显示单个层级（TLB / CACHE / FAULT）的比率、计数和最近一次状态
    """
    def __init__(self, stage_name):
        super().__init__(id=f"card-{stage_name.lower()}")
        self.stage_name = stage_name

    def compose(self) -> ComposeResult:
        yield Label(self.stage_name, classes="card-title")
        yield Label("0.0%", classes="card-rate")
        yield Label("0 / 0", classes="card-count")
        yield Label("--", classes="card-status")

    def update_data(self, rate: float, count: str, status: str):
        """更新卡片数据"""
        self.query_one(".card-rate").update(f"{rate:.1f}%")
        self.query_one(".card-count").update(count)

        status_lbl = self.query_one(".card-status")
        status_lbl.update(status)
        status_lbl.classes = "card-status status-hit" if status == "Hit" else "card-status status-miss"

    def reset(self):
        self.update_data(0.0, "0 / 0", "--")


class SlotBlock(Static):
    """
    TLB 或 Cache 槽位组件

    根据快照数据自我渲染，FIFO 指针所在的槽位高亮显示
    """
    def compose(self) -> ComposeResult:
        yield Label("#0", classes="slot-idx")
        yield Label("--", classes="slot-page")
        yield Label("", classes="slot-meta")

    def update_state(self, idx: int, data: dict, is_next: bool):
        """
        Args:
            idx: 槽位号
            data: 槽位快照（None 表示空槽）
            is_next: 是否为 FIFO 指针指向的下一个被覆盖槽位
        """
        self.query_one(".slot-idx").update(f"#{idx}")
        self.classes = ""
        if is_next:
            self.add_class("fifo-hand")

        if data is None:
            self.query_one(".slot-page").update("--")
            self.query_one(".slot-meta").update("EMPTY")
            self.add_class("block-empty")
            return

        self.query_one(".slot-page").update(f"PG:{data['page']}" if "page" in data else f"FR:{data['frame']}")
        self.query_one(".slot-meta").update(data["meta"])
        self.add_class("block-active")


class MMUSimApp(App):
    """地址转换模拟器 TUI 应用"""
    CSS_PATH = "styles.tcss"

    BINDINGS = [
        ("space", "toggle", "Start/Pause"),
        ("r", "reset", "Reset"),
        ("ctrl+c", "quit", "Quit"),
    ]

    def __init__(self, simulator=None):
        super().__init__()
        self.logic = simulator if simulator is not None else Simulator()
        self.timer = None
        self.sim_running = False
        self.tlb_block_refs = []
        self.cache_block_refs = []

    def compose(self) -> ComposeResult:
        yield Label("MMU Translation Simulator", classes="app-title")

        with Container(id="stats-panel"):
            yield StatCard("TLB")
            yield StatCard("CACHE")
            yield StatCard("FAULT")

        with Container(id="controls-panel"):
            with Container(id="setting-row"):
                yield Label("VA (0-65535, -1 exit):")
                yield Input(placeholder="0", type="integer", id="input-addr")

            with Container(classes="action-row"):
                yield Button("START", id="btn-start", variant="success")
                yield Button("ALIAS", id="btn-alias", variant="error")

        with Container(id="log-panel"):
            with Container(id="chart-container"):
                yield PlotextPlot(id="hit-chart-plot")
            yield RichLog(id="sys-log", markup=True, wrap=True)

        yield Label("TLB", classes="panel-title")
        yield Container(id="tlb-panel")
        yield Label("CACHE", classes="panel-title")
        yield Container(id="cache-panel")
        yield Footer()

    async def on_mount(self):
        self.query_one("#sys-log").write("System Initialized.")
        self.init_chart()

        self.tlb_block_refs = [SlotBlock() for _ in range(self.logic.tlb_size)]
        await self.query_one("#tlb-panel").mount(*self.tlb_block_refs)
        self.cache_block_refs = [SlotBlock() for _ in range(self.logic.cache_size)]
        await self.query_one("#cache-panel").mount(*self.cache_block_refs)
        self.refresh_slots()

    def init_chart(self):
        plt = self.query_one("#hit-chart-plot", PlotextPlot).plt
        plt.title("Hit Rate Trend")
        plt.theme("pro")
        plt.xlabel("")
        plt.ylabel("Hit %")
        plt.ylim(0, 100)

    def on_input_submitted(self, event: Input.Submitted):
        if event.input.id == "input-addr":
            self.submit_address(event.value)
            event.input.value = ""

    def submit_address(self, text):
        """处理一次地址输入：-1 退出，越界地址只报告错误"""
        log = self.query_one("#sys-log")
        if not text:
            return None
        try:
            value = parse_address(text)
        except ValueError:
            log.write(f"[red]Error: '{text}' is not an integer[/]")
            return None

        if value == EXIT_SENTINEL:
            self._stop_simulation()
            self.exit()
            return None
        if not is_valid_address(value):
            log.write("[red]Error: Enter address between 0 - 65535 only.[/]")
            return None

        result = self.logic.translate(value)
        self.show_result(result)
        return result

    def on_button_pressed(self, event):
        bid = event.button.id
        if bid == "btn-start":
            self.action_toggle()
        elif bid == "btn-alias":
            self.start_alias_demo()

    def start_alias_demo(self):
        self._stop_simulation()
        self.logic.reset()
        self.logic.load_alias_demo()
        self.reset_views()

        log = self.query_one("#sys-log")
        log.clear()
        log.write("[bold magenta]=== Frame Aliasing Demo ===[/]")
        log.write("Seq: page 4, page 20, page 4, page 20")
        log.write("Page 20 faults into frame 20 mod 16 = 4, page 4 keeps its mapping to frame 4")
        log.write("Press START to run.")

    def action_toggle(self):
        # 没有待执行的序列时生成新的随机访问序列
        if not self.sim_running and self.logic.current_time >= len(self.logic.sequence):
            self.logic.load_sequence(self.logic.generate_addresses(AUTO_RUN_LENGTH))
            self.query_one("#sys-log").write(f"Generated {AUTO_RUN_LENGTH} addresses with locality.")

        self.sim_running = not self.sim_running
        btn = self.query_one("#btn-start")
        if self.sim_running:
            btn.label = "PAUSE"
            btn.add_class("pause")
            self.timer = self.set_interval(0.05, self.step_simulation)
        else:
            btn.label = "RESUME"
            btn.remove_class("pause")
            if self.timer:
                self.timer.stop()

    def action_reset(self):
        """响应 'r' 键重置模拟"""
        self._stop_simulation()
        self.logic.reset()
        self.logic.load_sequence([], mode="MANUAL")
        self.reset_views()
        self.query_one("#sys-log").write("[bold red]System Reset.[/]")

    def _stop_simulation(self):
        self.sim_running = False
        if self.timer:
            self.timer.stop()
        btn = self.query_one("#btn-start")
        btn.label = "START"
        btn.remove_class("pause")

    def reset_views(self):
        for card in self.query(StatCard):
            card.reset()
        self.refresh_chart()
        self.refresh_slots()

    def refresh_chart(self):
        plot_widget = self.query_one("#hit-chart-plot", PlotextPlot)
        plt = plot_widget.plt
        plt.clear_data()

        history = self.logic.history
        if history:
            steps = [point["step"] for point in history]
            plt.plot(steps, [point["tlb_hit_rate"] for point in history], color="cyan", marker="dot", label="TLB")
            plt.plot(steps, [point["cache_hit_rate"] for point in history], color="green", marker="dot", label="Cache")

        plot_widget.refresh()

    def refresh_slots(self):
        tlb_hand = self.logic.tlb.predict_next_victim()
        for i, data in enumerate(self.logic.tlb.get_snapshot()[:len(self.tlb_block_refs)]):
            self.tlb_block_refs[i].update_state(i, data, i == tlb_hand)

        cache_hand = self.logic.cache.predict_next_victim()
        for i, data in enumerate(self.logic.cache.get_snapshot()[:len(self.cache_block_refs)]):
            self.cache_block_refs[i].update_state(i, data, i == cache_hand)

    def step_simulation(self):
        """执行单步模拟并更新UI"""
        res = self.logic.step()
        if res is None:
            self._stop_simulation()
            self.query_one("#btn-start").label = "FINISHED"
            if self.logic.mode == "ALIAS":
                mapping = self.logic.page_table.get_snapshot()
                pages = [page for page, frame in mapping.items() if frame == 4]
                self.query_one("#sys-log").write(f"[magenta]Result: frame 4 claimed by pages {pages}[/]")
            return
        self.show_result(res)

    def show_result(self, res):
        stats = self.logic.stats

        # 1. 更新统计卡片
        self.query_one("#card-tlb", StatCard).update_data(
            stats.tlb_hit_rate, f"{stats.tlb_hits} / {stats.tlb_misses}", res["tlb_outcome"])
        self.query_one("#card-cache", StatCard).update_data(
            stats.cache_hit_rate, f"{stats.cache_hits} / {stats.cache_misses}", res["cache_outcome"])
        self.query_one("#card-fault", StatCard).update_data(
            stats.fault_rate, f"{stats.page_faults}", "Miss" if res["fault_occurred"] else "Hit")

        # 2. 刷新趋势图
        self.refresh_chart()

        # 3. 更新槽位
        self.refresh_slots()

        # 4. 打印日志
        tlb_str = "[green]TLB HIT [/]" if res["tlb_outcome"] == "Hit" else "[red]TLB MISS[/]"
        cache_str = "[green]C-HIT [/]" if res["cache_outcome"] == "Hit" else "[red]C-MISS[/]"
        fault_str = " │ [bold yellow]FAULT[/]" if res["fault_occurred"] else ""

        virt_addr = f"VA:{res['virtual_address']:>5}"
        page_info = f"Pg:{res['page_number']:>3}"
        offset_info = f"Off:{res['offset']:>3}"
        phys_info = f"Fr:{res['frame_number']:>2} → PA:{res['physical_address']:>4}"

        msg = f"{tlb_str} │ {cache_str} │ [cyan]{virt_addr}[/] → {page_info} {offset_info} → [green]{phys_info}[/]{fault_str}"

        aliases = [p for p in self.logic.page_table.mapped_pages(res["frame_number"]) if p != res["page_number"]]
        if aliases:
            msg += f" │ Alias: Pg{','.join(str(p) for p in aliases)}"

        self.query_one("#sys-log").write(msg)

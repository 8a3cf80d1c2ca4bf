from __future__ import annotations

import logging

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QApplication,
    QCheckBox,
    QFrame,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QSplitter,
    QTabWidget,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from services.pipeline import DashboardPipeline
from ui.components.chart_canvas import ChartCanvas
from ui.components.notification_banner import NotificationBanner
from ui.components.recommendation_panel import RecommendationPanel
from ui.components.status_panel import StatusPanel
from ui.components.strategy_panel import StrategyDetailPanel
from ui.style.theme import apply_matplotlib_preferred_font, qt_stylesheet, theme_for
from ui.viewmodels.main import MainViewModel
from ui.workers.pipeline_worker import PipelineWorker

logger = logging.getLogger(__name__)

DEBOUNCE_MS = 700
DISCLAIMER = "This app is purely for entertainment and does NOT constitute financial advice!"


def _level_tabs(levels: tuple[int, ...], factory) -> tuple[QTabWidget, dict]:
    tabs = QTabWidget()
    widgets = {}
    for level in levels:
        widget = factory(level)
        widgets[level] = widget
        tabs.addTab(widget, f"Strategy L{level}")
    return tabs, widgets


def run_app(pipeline: DashboardPipeline, initial_symbol: str | None = None) -> int:
    app = QApplication([])
    apply_matplotlib_preferred_font()
    window = QMainWindow()
    window.setWindowTitle("Trading Assistant")

    viewmodel = MainViewModel(pipeline)
    levels = viewmodel.levels

    # -- サイドバー ---------------------------------------------------------------
    symbol_input = QLineEdit()
    symbol_input.setPlaceholderText("Enter symbol...")
    company_label = QLabel("")
    company_label.setWordWrap(True)
    disclaimer = QLabel(f"<b>DISCLAIMER</b><br><i>{DISCLAIMER}</i>")
    disclaimer.setWordWrap(True)
    banner = NotificationBanner()

    sidebar = QFrame()
    sidebar.setFrameShape(QFrame.Shape.StyledPanel)
    sidebar_layout = QVBoxLayout(sidebar)
    sidebar_layout.addWidget(QLabel("Symbol:"))
    sidebar_layout.addWidget(symbol_input)
    sidebar_layout.addWidget(company_label)
    sidebar_layout.addWidget(banner)
    sidebar_layout.addStretch()
    sidebar_layout.addWidget(disclaimer)
    sidebar.setMinimumWidth(220)

    # -- タブ ---------------------------------------------------------------------
    recommendation_panel = RecommendationPanel(levels)
    status_panel = StatusPanel()
    summary_page = QWidget()
    summary_layout = QVBoxLayout(summary_page)
    summary_layout.addWidget(recommendation_panel, 2)
    summary_layout.addWidget(status_panel, 3)

    candle_canvas = ChartCanvas()
    analysis_tabs = QTabWidget()
    analysis_tabs.addTab(candle_canvas, "Candlestick")
    cloud_canvases: dict[int, ChartCanvas] = {}
    for level in levels:
        cloud_canvases[level] = ChartCanvas()
        analysis_tabs.addTab(cloud_canvases[level], f"Strategy L{level}")

    performance_tabs, performance_canvases = _level_tabs(levels, lambda _level: ChartCanvas())
    details_tabs, detail_panels = _level_tabs(levels, StrategyDetailPanel)

    forecast_canvas = ChartCanvas()
    decomposition_canvas = ChartCanvas()
    prophet_tabs = QTabWidget()
    prophet_tabs.addTab(forecast_canvas, "Forecast")
    prophet_tabs.addTab(decomposition_canvas, "Decomposition")

    pages = QTabWidget()
    pages.addTab(summary_page, "Summary")
    pages.addTab(analysis_tabs, "Analysis Charts")
    pages.addTab(performance_tabs, "Performance Charts")
    pages.addTab(details_tabs, "Strategy Details")
    pages.addTab(prophet_tabs, "Prophet Forecast")

    splitter = QSplitter(Qt.Orientation.Horizontal)
    splitter.addWidget(sidebar)
    splitter.addWidget(pages)
    splitter.setStretchFactor(0, 1)
    splitter.setStretchFactor(1, 5)
    splitter.setSizes([260, 1400])
    window.setCentralWidget(splitter)

    toolbar = QToolBar()
    window.addToolBar(toolbar)
    status_bar = window.statusBar()

    canvases: list[ChartCanvas] = [
        candle_canvas,
        forecast_canvas,
        decomposition_canvas,
        *cloud_canvases.values(),
        *performance_canvases.values(),
    ]

    current_worker: PipelineWorker | None = None
    pending_input: str | None = None

    def current_theme():
        return theme_for(viewmodel.dark_mode)

    def render_all() -> None:
        theme = current_theme()
        state = viewmodel.state()
        company_label.setText(state.company)
        recommendation_panel.update_view(viewmodel, theme)
        status_panel.update_state(state)
        candle_canvas.show_view(viewmodel.candlestick(), theme)
        for level in levels:
            cloud_canvases[level].show_view(viewmodel.cloud(level), theme)
            performance_canvases[level].show_view(viewmodel.performance(level), theme)
            detail_panels[level].update_view(viewmodel)
        forecast_canvas.show_view(viewmodel.forecast(), theme)
        decomposition_canvas.show_view(viewmodel.decomposition(), theme)
        update_status_bar(state)

    def update_status_bar(state) -> None:
        cache = pipeline.cache
        prefix = f"Loading {state.symbol}" if state.running else (state.symbol or "Ready")
        status_bar.showMessage(f"{prefix} | cache: {len(cache)} entries, {cache.hits} hits / {cache.misses} misses")

    def start_pipeline(raw: str) -> None:
        nonlocal current_worker, pending_input
        if current_worker is not None:
            # 実行中は最新の入力だけを保持する
            pending_input = raw
            return
        state = viewmodel.begin(raw)
        status_panel.update_state(state)
        update_status_bar(state)
        worker = PipelineWorker(pipeline, raw)
        current_worker = worker
        worker.completed.connect(on_worker_completed)
        worker.failed.connect(on_worker_failed)
        worker.finished.connect(on_worker_finished)
        worker.start()

    def on_worker_completed(raw: str, snapshot) -> None:
        if pending_input is not None and pending_input != raw:
            return
        viewmodel.apply(snapshot)
        render_all()

    def on_worker_failed(raw: str, message: str) -> None:
        logger.error("Pipeline failed for %r: %s", raw, message)
        QMessageBox.critical(window, "Error", message)

    def on_worker_finished() -> None:
        nonlocal current_worker, pending_input
        if current_worker is not None:
            current_worker.deleteLater()
            current_worker = None
        if pending_input is not None:
            raw, pending_input = pending_input, None
            start_pipeline(raw)

    debounce = QTimer(window)
    debounce.setSingleShot(True)
    debounce.setInterval(DEBOUNCE_MS)
    debounce.timeout.connect(lambda: start_pipeline(symbol_input.text()))
    symbol_input.textChanged.connect(lambda _text: debounce.start())

    def submit_now() -> None:
        debounce.stop()
        start_pipeline(symbol_input.text())

    symbol_input.returnPressed.connect(submit_now)

    def reload_symbol() -> None:
        if viewmodel.reload():
            start_pipeline(symbol_input.text())

    def toggle_dark_mode(checked: bool) -> None:
        viewmodel.set_dark_mode(checked)
        theme = current_theme()
        app.setStyleSheet(qt_stylesheet(theme))
        # 再計算はせず描画だけやり直す
        recommendation_panel.restyle(theme)
        for canvas in canvases:
            canvas.restyle(theme)

    action_reload = QAction("Reload", window)
    action_reload.triggered.connect(reload_symbol)
    toolbar.addAction(action_reload)
    toolbar.addSeparator()
    dark_toggle = QCheckBox("Dark mode")
    dark_toggle.toggled.connect(toggle_dark_mode)
    toolbar.addWidget(dark_toggle)

    pipeline.notifier.subscribe(banner.push)

    render_all()
    if initial_symbol:
        symbol_input.setText(initial_symbol)
        debounce.stop()
        start_pipeline(initial_symbol)

    window.resize(1680, 1020)
    window.show()
    return app.exec()

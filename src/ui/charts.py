"""ChartView を matplotlib の Figure に描画する。"""
from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from matplotlib import dates as mdates
from matplotlib import pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from mplfinance.original_flavor import candlestick_ohlc

from analysis.indicators import compute_indicators
from analysis.performance import performance_frame
from domain.errors import classify_error
from domain.models import ForecastResult, RawSeries, StrategySignal
from ui.style.theme import LIGHT, Theme
from ui.viewmodels.main import ChartView

logger = logging.getLogger(__name__)


def render_chart(view: ChartView, theme: Theme = LIGHT) -> Figure:
    """描画に失敗した場合は汎用エラーのプレースホルダを返す。"""
    if not view.has_data:
        return placeholder_figure(view.placeholder or "", view.hint, theme)
    renderer = _RENDERERS[view.kind]
    try:
        return renderer(view, theme)
    except Exception as exc:
        logger.exception("Failed to render %s chart", view.kind)
        error = classify_error("generic", view.level, exc)
        return placeholder_figure(error.presentation_message, None, theme)


def placeholder_figure(message: str, hint: str | None = None, theme: Theme = LIGHT) -> Figure:
    fig = Figure(figsize=(8, 4), facecolor=theme.background)
    ax = fig.add_subplot(111)
    ax.set_facecolor(theme.background)
    ax.text(0.5, 0.5, message, ha="center", va="center", fontsize=14, color=theme.text)
    if hint:
        ax.text(0.5, 0.4, hint, ha="center", va="center", fontsize=10, color=theme.text, alpha=0.8)
    ax.set_axis_off()
    return fig


def _style_axes(ax: Axes, theme: Theme) -> None:
    ax.set_facecolor(theme.background)
    ax.tick_params(colors=theme.text, labelsize=9)
    ax.yaxis.label.set_color(theme.text)
    ax.xaxis.label.set_color(theme.text)
    ax.title.set_color(theme.text)
    for spine in ax.spines.values():
        spine.set_color(theme.grid)
    ax.grid(True, color=theme.grid, linewidth=0.3)


# -- ローソク足 + 指標 ---------------------------------------------------------------


def candlestick_figure(view: ChartView, theme: Theme) -> Figure:
    raw: RawSeries = view.payload
    df = compute_indicators(raw.frame)
    fig = Figure(figsize=(11, 9), facecolor=theme.background)
    grid = fig.add_gridspec(4, 1, height_ratios=[3, 1, 1, 1], hspace=0.08)
    ax_price = fig.add_subplot(grid[0])
    ax_volume = fig.add_subplot(grid[1], sharex=ax_price)
    ax_rsi = fig.add_subplot(grid[2], sharex=ax_price)
    ax_macd = fig.add_subplot(grid[3], sharex=ax_price)

    dates = mdates.date2num(df.index.to_pydatetime())
    ax_price.fill_between(df.index, df["BB_lower"], df["BB_upper"], color="blue", alpha=0.1, linewidth=0)
    ax_price.plot(df.index, df["BB_upper"], color="blue", alpha=0.6, linewidth=0.5)
    ax_price.plot(df.index, df["BB_lower"], color="blue", alpha=0.6, linewidth=0.5)
    ax_price.plot(df.index, df["BB_mavg"], color="blue", alpha=0.8, linewidth=0.7, label="BB(20, 2)")
    ohlc = np.column_stack([dates, df[["Open", "High", "Low", "Close"]].to_numpy()])
    candlestick_ohlc(ax_price, ohlc, colorup=theme.up, colordown=theme.down, width=0.6)
    ax_price.plot(df.index, df["SMA20"], color="orange", linewidth=0.8, alpha=0.8, label="SMA20")
    ax_price.plot(df.index, df["SMA50"], color="purple", linewidth=0.8, alpha=0.8, label="SMA50")
    ax_price.set_ylabel("Price ($)")
    ax_price.set_title(view.title, fontsize=14, fontweight="bold")
    ax_price.legend(loc="upper left", fontsize=8)

    colors = np.where(df["direction"] == "up", theme.up, theme.down)
    ax_volume.bar(df.index, df["Volume"], color=colors, alpha=0.7, width=0.8)
    ax_volume.set_ylabel("Volume")

    ax_rsi.plot(df.index, df["RSI"], color="cyan", linewidth=0.8)
    ax_rsi.axhline(70, color="red", linestyle="--", alpha=0.7)
    ax_rsi.axhline(30, color="green", linestyle="--", alpha=0.7)
    ax_rsi.axhline(50, color=theme.text, linestyle=":", alpha=0.5)
    ax_rsi.set_ylim(0, 100)
    ax_rsi.set_ylabel("RSI")

    ax_macd.plot(df.index, df["MACD"], color="blue", linewidth=0.8, label="MACD")
    ax_macd.plot(df.index, df["MACD_signal"], color="red", linewidth=0.8, label="Signal")
    ax_macd.axhline(0, color=theme.text, linestyle=":", alpha=0.5)
    ax_macd.set_ylabel("MACD")
    ax_macd.set_xlabel("Date")

    for ax in (ax_price, ax_volume, ax_rsi, ax_macd):
        _style_axes(ax, theme)
    for ax in (ax_price, ax_volume, ax_rsi):
        ax.tick_params(labelbottom=False)
    ax_macd.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m"))
    return fig


# -- ストラテジー ---------------------------------------------------------------------


def showcase_figure(view: ChartView, theme: Theme) -> Figure:
    signal: StrategySignal = view.payload
    fig = Figure(figsize=(4, 1.2), facecolor=theme.background)
    ax = fig.add_subplot(111)
    ax.plot(signal.frame.index, signal.frame["cond"], color=theme.accent, linewidth=0.8)
    _style_axes(ax, theme)
    ax.set_yticks([])
    ax.tick_params(labelsize=7)
    fig.tight_layout(pad=0.3)
    return fig


def cloud_figure(view: ChartView, theme: Theme) -> Figure:
    """一目均衡表の雲と、ストラテジーの保有期間。"""
    signal: StrategySignal = view.payload
    frame = signal.frame
    fig = Figure(figsize=(11, 6), facecolor=theme.background)
    ax = fig.add_subplot(111)
    dates = mdates.date2num(frame.index.to_pydatetime())
    ohlc = np.column_stack([dates, frame[["open", "high", "low", "close"]].to_numpy()])
    candlestick_ohlc(ax, ohlc, colorup=theme.up, colordown=theme.down, width=0.6)

    senkou_a = frame["senkouA"]
    senkou_b = frame["senkouB"]
    ax.fill_between(frame.index, senkou_a, senkou_b, where=senkou_a >= senkou_b, color="green", alpha=0.2, interpolate=True)
    ax.fill_between(frame.index, senkou_a, senkou_b, where=senkou_a < senkou_b, color="red", alpha=0.2, interpolate=True)
    ax.plot(frame.index, frame["tenkan"], color="#1f77b4", linewidth=0.8, label="Tenkan")
    ax.plot(frame.index, frame["kijun"], color="#d62728", linewidth=0.8, label="Kijun")
    ax.plot(frame.index, frame["chikou"], color="#7f7f7f", linewidth=0.6, alpha=0.8, label="Chikou")

    # 保有期間を背景に表示
    ymin, ymax = ax.get_ylim()
    holding = (frame["posn"] == 1).to_numpy()
    ax.fill_between(frame.index, ymin, ymax, where=holding, color=theme.accent, alpha=0.08, step="mid", label="In market")
    ax.set_ylim(ymin, ymax)
    ax.set_title(f"{view.title}\n{signal.name}", fontsize=12)
    ax.legend(loc="upper left", fontsize=8)
    _style_axes(ax, theme)
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m"))
    return fig


def performance_figure(view: ChartView, theme: Theme) -> Figure:
    """累積リターン・期間リターン・ドローダウンの3段チャート。"""
    signal: StrategySignal = view.payload
    perf = performance_frame(signal)
    fig = Figure(figsize=(11, 8), facecolor=theme.background)
    grid = fig.add_gridspec(3, 1, height_ratios=[2, 1, 1], hspace=0.1)
    ax_cum = fig.add_subplot(grid[0])
    ax_ret = fig.add_subplot(grid[1], sharex=ax_cum)
    ax_dd = fig.add_subplot(grid[2], sharex=ax_cum)

    ax_cum.plot(perf.index, perf["cum_sret"], color=theme.accent, linewidth=1.0, label="sret")
    ax_cum.plot(perf.index, perf["cum_ret"], color="#7f7f7f", linewidth=1.0, label="ret")
    ax_cum.set_ylabel("Cumulative Return")
    ax_cum.set_title(view.title, fontsize=13)
    ax_cum.legend(loc="upper left", fontsize=8)

    ax_ret.bar(perf.index, perf["sret"], color=theme.accent, width=1.0)
    ax_ret.set_ylabel("Daily Return")

    ax_dd.fill_between(perf.index, perf["dd_sret"], 0, color=theme.accent, alpha=0.5)
    ax_dd.plot(perf.index, perf["dd_ret"], color="#7f7f7f", linewidth=0.8)
    ax_dd.set_ylabel("Drawdown")

    for ax in (ax_cum, ax_ret, ax_dd):
        _style_axes(ax, theme)
    for ax in (ax_cum, ax_ret):
        ax.tick_params(labelbottom=False)
    ax_dd.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m"))
    return fig


# -- Prophet ----------------------------------------------------------------------------


def forecast_figure(view: ChartView, theme: Theme) -> Figure:
    from prophet.plot import add_changepoints_to_plot

    result: ForecastResult = view.payload
    fig = Figure(figsize=(11, 6), facecolor=theme.background)
    ax = fig.add_subplot(111)
    result.model.plot(result.forecast, ax=ax)
    add_changepoints_to_plot(ax, result.model, result.forecast)
    ax.axvline(pd.Timestamp(result.history_end), color=theme.text, linestyle=":", alpha=0.5)
    ax.set_title(view.title)
    _style_axes(ax, theme)
    return fig


def decomposition_figure(view: ChartView, theme: Theme) -> Figure:
    result: ForecastResult = view.payload
    fig = result.model.plot_components(result.forecast)
    # Prophet は pyplot 管理下の Figure を返すので切り離す
    plt.close(fig)
    fig.set_facecolor(theme.background)
    for ax in fig.axes:
        _style_axes(ax, theme)
    return fig


_RENDERERS = {
    "candlestick": candlestick_figure,
    "showcase": showcase_figure,
    "cloud": cloud_figure,
    "performance": performance_figure,
    "forecast": forecast_figure,
    "decomposition": decomposition_figure,
}

import matplotlib

matplotlib.use("Agg")

from matplotlib.colors import to_hex

import pytest

from analysis.ichimoku import autostrat, build_cloud
from domain.models import RawSeries, Ticker
from ui.charts import placeholder_figure, render_chart
from ui.style.theme import DARK, LIGHT
from ui.viewmodels.main import ChartView


def _texts(fig):
    return [text.get_text() for ax in fig.axes for text in ax.texts]


def test_placeholder_without_data():
    fig = render_chart(ChartView("candlestick", placeholder="Network error - unable to fetch data", hint="Try again later"))
    assert _texts(fig) == ["Network error - unable to fetch data", "Try again later"]
    assert not fig.axes[0].axison


def test_placeholder_uses_theme_colors():
    fig = placeholder_figure("Enter stock symbol", theme=DARK)
    assert to_hex(fig.get_facecolor()) == DARK.background
    assert to_hex(fig.axes[0].texts[0].get_color()) == "#ffffff"


def test_candlestick_has_four_panels(make_prices):
    series = RawSeries(Ticker("AAPL"), make_prices(120))
    fig = render_chart(ChartView("candlestick", title="AAPL", payload=series), LIGHT)
    assert len(fig.axes) == 4
    assert fig.axes[2].get_ylim() == (0.0, 100.0)
    assert _texts(fig) == []


@pytest.mark.parametrize("kind, axes", [("showcase", 1), ("cloud", 1), ("performance", 3)])
def test_strategy_charts(make_prices, kind, axes):
    cloud = build_cloud(make_prices(200), "AAPL")
    signal = autostrat(cloud, n=1, level=1)[0]
    fig = render_chart(ChartView(kind, title="L1 AAPL", payload=signal, level=1), DARK)
    assert len(fig.axes) == axes


def test_render_failure_falls_back_to_placeholder():
    fig = render_chart(ChartView("performance", title="broken", payload=object(), level=2))
    assert _texts(fig) == ["Error generating visualization"]

import threading

import pandas as pd
import pytest

from analysis.ichimoku import autostrat
from domain.errors import ErrorKind
from domain.models import BUY_HOLD, SELL_WAIT, Ticker
from services.company import CompanyNameLookup


def test_valid_symbol_computes_every_stage(make_prices, make_pipeline, fake_downloader):
    downloader = fake_downloader(make_prices(300))
    pipeline = make_pipeline(downloader)
    snapshot = pipeline.run(" aapl ")
    assert snapshot.symbol == "AAPL"
    assert snapshot.series.is_ok
    assert sorted(snapshot.strategies) == [1, 2, 3]
    for level, result in snapshot.strategies.items():
        assert result.is_ok
        assert result.value.level == level
        assert result.value.recommendation() in {BUY_HOLD, SELL_WAIT}
    assert snapshot.forecast.is_ok
    assert len(snapshot.forecast.value.future_only()) == 90
    assert downloader.calls == ["AAPL"]
    assert pipeline.notifier.history() == ()


def test_empty_input_does_nothing(make_pipeline, fake_downloader):
    downloader = fake_downloader()
    snapshot = make_pipeline(downloader).run("   ")
    assert snapshot.is_empty
    assert snapshot.series is None
    assert snapshot.strategies == {}
    assert downloader.calls == []


def test_invalid_symbol_warns_without_fetching(make_pipeline, fake_downloader):
    downloader = fake_downloader()
    pipeline = make_pipeline(downloader)
    snapshot = pipeline.run("AAPL$")
    assert downloader.calls == []
    notes = pipeline.notifier.history()
    assert [n.level for n in notes] == ["warning"]
    assert notes[0].message.startswith("Invalid symbol format.")
    assert snapshot.series.error.kind is ErrorKind.GENERIC
    for level, result in snapshot.strategies.items():
        assert result.error.kind is ErrorKind.STRATEGY_FAILURE
        assert result.error.level == level
    assert snapshot.forecast.error.kind is ErrorKind.FORECAST_FAILURE


def test_network_failure_reaches_every_view(make_pipeline, fake_downloader):
    downloader = fake_downloader(error=Exception("connection timeout"))
    pipeline = make_pipeline(downloader)
    snapshot = pipeline.run("MSFT")
    # 初回 + 再試行2回。系列はキャッシュされるので後続ステージは再取得しない
    assert len(downloader.calls) == 3
    assert snapshot.series.error.kind is ErrorKind.NETWORK
    assert all(r.error.kind is ErrorKind.NETWORK for r in snapshot.strategies.values())
    assert snapshot.forecast.error.kind is ErrorKind.NETWORK
    errors = [n for n in pipeline.notifier.history() if n.level == "error"]
    assert len(errors) == 1
    assert errors[0].message.startswith("Error downloading data for MSFT:")
    # 対処方法はツールチップ用の detail に入る
    assert "Inspect the log pane" in errors[0].detail
    assert "Support: " in errors[0].detail
    assert errors[0].detail.endswith("Details: connection timeout")


def test_unknown_symbol_is_no_data(make_pipeline, fake_downloader):
    snapshot = make_pipeline(fake_downloader(pd.DataFrame())).run("ZZZZ")
    assert snapshot.series.error.kind is ErrorKind.NO_DATA
    assert snapshot.series.error.presentation_message == "No data available for ZZZZ"
    assert snapshot.strategies[2].error.kind is ErrorKind.NO_DATA


def test_short_history_fails_forecast_and_strategies(make_prices, make_pipeline, fake_downloader):
    pipeline = make_pipeline(fake_downloader(make_prices(10)))
    snapshot = pipeline.run("TINY")
    assert snapshot.series.is_ok
    assert snapshot.forecast.error.kind is ErrorKind.FORECAST_FAILURE
    assert snapshot.forecast.error.presentation_message == "Forecast unavailable - need more data points"
    for level, result in snapshot.strategies.items():
        assert result.error.kind is ErrorKind.STRATEGY_FAILURE
        assert result.error.short_message == f"Strategy L{level} calculation failed"
    messages = [n.message for n in pipeline.notifier.history()]
    assert any(m.startswith("Error creating Prophet forecast:") for m in messages)
    assert sum(m.startswith("Error creating strategy L") for m in messages) == 3


def test_each_stage_is_computed_once_per_symbol(make_prices, make_pipeline, fake_downloader, stub_prophet):
    calls: list[int] = []
    lock = threading.Lock()

    def counting(cloud, **kwargs):
        with lock:
            calls.append(kwargs["level"])
        return autostrat(cloud, **kwargs)

    downloader = fake_downloader(make_prices(200))
    pipeline = make_pipeline(downloader, autostrat_fn=counting)
    first = pipeline.run("AAPL")
    again = pipeline.run("aapl")
    assert downloader.calls == ["AAPL"]
    assert sorted(calls) == [1, 2, 3]
    assert len(stub_prophet.instances) == 1
    assert again.strategies[1].value is first.strategies[1].value
    assert pipeline.cache.hits > 0


def test_invalidate_forces_recompute(make_prices, make_pipeline, fake_downloader):
    downloader = fake_downloader(make_prices(200))
    pipeline = make_pipeline(downloader)
    pipeline.run("AAPL")
    assert pipeline.invalidate("aapl") == 5
    pipeline.run("AAPL")
    assert downloader.calls == ["AAPL", "AAPL"]


def test_strategy_rejects_bad_level(make_prices, make_pipeline, fake_downloader):
    pipeline = make_pipeline(fake_downloader(make_prices(60)))
    with pytest.raises(ValueError):
        pipeline.strategy(Ticker("AAPL"), 0)


def test_company_name_in_snapshot(make_prices, make_pipeline, fake_downloader):
    pipeline = make_pipeline(fake_downloader(make_prices(60)))
    pipeline.company_lookup = CompanyNameLookup(
        pd.DataFrame({"symbol": ["AAPL"], "name": ["Apple Inc. - Common Stock"], "exchange": ["NASDAQ"]})
    )
    assert pipeline.run("AAPL").company == "Apple Inc. - Common Stock"

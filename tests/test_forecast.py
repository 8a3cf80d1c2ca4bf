import pandas as pd
import pytest

from domain.errors import AppError, ErrorKind, classify_error
from domain.models import RawSeries, Ticker
from services.forecast import ForecastEngine


def _series(make_prices, periods=120) -> RawSeries:
    return RawSeries(Ticker("TEST"), make_prices(periods))


def test_forecast_extends_history_by_horizon(make_prices, stub_prophet):
    series = _series(make_prices)
    result = ForecastEngine(90, model_factory=stub_prophet).forecast(series)
    assert result.history_end == series.last_date
    assert result.future["ds"].max() == series.last_date + pd.Timedelta(days=90)
    assert not result.future["ds"].duplicated().any()
    assert len(result.future_only()) == 90
    assert {"yhat", "yhat_lower", "yhat_upper"} <= set(result.forecast.columns)
    # 学習データは ds / y の2列のみ
    model = stub_prophet.instances[-1]
    assert list(model.history.columns) == ["ds", "y"]
    assert len(model.history) == len(series)


def test_short_history_is_a_forecast_failure(make_prices, stub_prophet):
    engine = ForecastEngine(model_factory=stub_prophet)
    with pytest.raises(AppError) as excinfo:
        engine.forecast(_series(make_prices, periods=10))
    err = excinfo.value
    assert err.code == "E-FORECAST"
    assert "insufficient data" in err.message_text()
    assert classify_error("prophet", error=err).kind is ErrorKind.FORECAST_FAILURE
    assert stub_prophet.instances == []


def test_model_errors_are_wrapped(make_prices):
    class Broken:
        def fit(self, df):
            raise RuntimeError("optimizer did not converge")

    with pytest.raises(AppError) as excinfo:
        ForecastEngine(model_factory=Broken).forecast(_series(make_prices))
    assert excinfo.value.code == "E-FORECAST"
    assert excinfo.value.detail == "optimizer did not converge"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


@pytest.mark.slow
def test_real_prophet_forecast(make_prices):
    series = _series(make_prices, periods=400)
    result = ForecastEngine(30).forecast(series)
    assert len(result.future_only()) == 30
    assert result.forecast["yhat"].notna().all()

import pytest

from domain.errors import AppError, ErrorKind, app_error, classify_error, ensure_app_error


def test_app_error_string_representation():
    err = AppError("E-TEST", "テストメッセージ", detail="detail", symbol="AAA")
    assert str(err) == "AAA: [E-TEST] テストメッセージ (detail)"
    assert "payload" not in err.for_log()


def test_ensure_app_error_wraps_generic_exception():
    cause = ValueError("bad value")
    wrapped = ensure_app_error(cause, code="E-WRAP", message="ラップエラー")
    assert isinstance(wrapped, AppError)
    assert wrapped.code == "E-WRAP"
    assert wrapped.user_message == "ラップエラー"
    assert "bad value" in str(wrapped)


def test_ensure_app_error_passes_through_app_error():
    err = AppError("E-PASS", "そのまま")
    assert ensure_app_error(err) is err


def test_app_error_catalog_defaults():
    err = app_error("E-YF-404", symbol="ZZZZ")
    assert err.user_message == "No data available for symbol"
    assert err.guidance is not None
    assert "Support:" in err.ui_body()


def test_message_text_excludes_symbol():
    err = app_error("E-STRATEGY", detail="boom", symbol="HTTP")
    assert "HTTP" not in err.message_text()
    assert err.message_text() == "Strategy calculation failed: boom"


def test_empty_input_wins_over_everything():
    result = classify_error("strategy", 2, RuntimeError("timeout"), empty_input=True)
    assert result.kind is ErrorKind.EMPTY_INPUT
    assert result.short_message == "Enter a stock symbol"
    assert result.presentation_message == "Enter a stock symbol to view chart"


def test_no_data_pattern_is_case_insensitive():
    result = classify_error("chart", error=RuntimeError("NO DATA AVAILABLE for x"), symbol="msft")
    assert result.kind is ErrorKind.NO_DATA
    assert result.short_message == "No data found for MSFT"
    assert result.presentation_message == "No data available for MSFT"


def test_symbol_not_found_is_no_data():
    result = classify_error("prophet", error=RuntimeError("Symbol not found"), symbol="X")
    assert result.kind is ErrorKind.NO_DATA


def test_no_data_beats_network():
    result = classify_error("chart", error=RuntimeError("HTTP 404: no data available"))
    assert result.kind is ErrorKind.NO_DATA


@pytest.mark.parametrize("text", ["network unreachable", "read timeout", "Connection reset", "HTTP Error 503"])
def test_network_patterns(text):
    result = classify_error("generic", error=RuntimeError(text))
    assert result.kind is ErrorKind.NETWORK
    assert result.short_message == "Network error - check internet connection"
    assert result.presentation_message == "Network error - unable to fetch data"


def test_timeout_in_strategy_context_is_network():
    result = classify_error("strategy", 1, RuntimeError("timeout"))
    assert result.kind is ErrorKind.NETWORK
    assert result.level == 1


def test_strategy_failure_needs_level():
    with_level = classify_error("strategy", 3, RuntimeError("singular matrix"))
    assert with_level.kind is ErrorKind.STRATEGY_FAILURE
    assert with_level.short_message == "Strategy L3 calculation failed"
    assert with_level.presentation_message == "Strategy L3 data unavailable"
    without_level = classify_error("strategy", None, RuntimeError("singular matrix"))
    assert without_level.kind is ErrorKind.GENERIC


def test_prophet_context_is_forecast_failure():
    result = classify_error("prophet", error=ValueError("Dataframe has less than 2 non-NaN rows."))
    assert result.kind is ErrorKind.FORECAST_FAILURE
    assert result.short_message == "Forecast model failed - insufficient data"
    assert result.presentation_message == "Forecast unavailable - need more data points"


def test_generic_fallback():
    result = classify_error("chart", error=KeyError("Close"))
    assert result.kind is ErrorKind.GENERIC
    assert result.short_message == "Calculation error occurred"
    assert result.presentation_message == "Error generating visualization"


def test_unknown_context_is_rejected():
    with pytest.raises(ValueError):
        classify_error("table")


def test_ticker_text_does_not_trigger_network_rule():
    err = app_error("E-STRATEGY", symbol="HTTP")
    assert classify_error("strategy", 1, err, symbol="HTTP").kind is ErrorKind.STRATEGY_FAILURE


def test_reclassify_uses_stored_cause():
    err = app_error("E-SYMBOL-INVALID", symbol="A$B")
    chart = classify_error("chart", error=err, symbol="A$B")
    assert chart.kind is ErrorKind.GENERIC
    strategy = chart.reclassify("strategy", 2)
    assert strategy.kind is ErrorKind.STRATEGY_FAILURE
    assert strategy.level == 2
    assert strategy.cause is err
    network = classify_error("chart", error=app_error("E-NETWORK", symbol="AAPL"))
    assert network.reclassify("prophet").kind is ErrorKind.NETWORK

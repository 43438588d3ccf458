import pytest

from agi_engine.protocol.result import Result


@pytest.mark.unit
def test_from_line_keeps_payload_untouched():
    result = Result.from_line("200 result=1 (somevalue) endpos=1234")
    assert result.status == "200"
    assert result.extra == "result=1 (somevalue) endpos=1234"
    assert result.raw == "200 result=1 (somevalue) endpos=1234"
    assert result.result == "1"


@pytest.mark.unit
def test_error_status_is_passed_through():
    result = Result.from_line("520 Invalid command syntax.  Proper usage not available.")
    assert result.status == "520"
    assert result.result is None


@pytest.mark.unit
def test_with_extra_replaces_payload_only():
    result = Result.from_line("200 result=1 (somevalue)")
    decoded = result.with_extra("somevalue")
    assert decoded.extra == "somevalue"
    assert decoded.status == "200"
    assert decoded.result == "1"
    assert result.extra == "result=1 (somevalue)"


@pytest.mark.unit
def test_result_code_from_extra_when_built_by_hand():
    assert Result(status="200", extra="result=0").result == "0"
    assert Result(status="200", extra=["a", "b"]).result is None

import pytest

from agi_engine.core.bootstrap import read_variables
from agi_engine.protocol.errors import AGIProtocolError


def _reader(lines):
    it = iter(lines)

    async def read_line():
        return next(it, None)

    return read_line


@pytest.mark.unit
async def test_reads_until_blank_line():
    variables = await read_variables(_reader(["foo: 1", "bar: baz", "", "200 result=0"]))
    assert variables == {"foo": "1", "bar": "baz"}


@pytest.mark.unit
async def test_splits_on_first_colon_and_trims():
    variables = await read_variables(_reader([
        "agi_request:  agi://10.0.0.5:4573/ivr ",
        "agi_network: yes\r",
        "\r",
    ]))
    assert variables == {"agi_request": "agi://10.0.0.5:4573/ivr", "agi_network": "yes"}


@pytest.mark.unit
async def test_short_line_terminates_preamble():
    variables = await read_variables(_reader(["foo: 1", "x", "bar: 2"]))
    assert variables == {"foo": "1"}


@pytest.mark.unit
async def test_empty_preamble():
    assert await read_variables(_reader([""])) == {}


@pytest.mark.unit
async def test_eof_returns_none():
    assert await read_variables(_reader([])) is None
    assert await read_variables(_reader(["foo: 1"])) is None


@pytest.mark.unit
async def test_line_without_separator_is_rejected():
    with pytest.raises(AGIProtocolError):
        await read_variables(_reader(["not a variable", ""]))

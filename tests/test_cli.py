import os

import pytest

from loyalty.cli import apply_flags, build_parser, parse_run_address


@pytest.mark.parametrize(
    "address,expected",
    [
        (":8081", ("0.0.0.0", 8081)),
        ("localhost:9000", ("localhost", 9000)),
        ("http://127.0.0.1:8000", ("127.0.0.1", 8000)),
    ],
)
def test_parse_run_address(address, expected):
    assert parse_run_address(address) == expected


@pytest.mark.parametrize("address", ["8081", "localhost", "host:port"])
def test_parse_run_address_rejects_garbage(address):
    with pytest.raises(ValueError):
        parse_run_address(address)


def test_environment_wins_over_flags(monkeypatch):
    monkeypatch.setenv("ACCRUAL_SYSTEM_ADDRESS", "http://from-env:8080")
    monkeypatch.delenv("RUN_ADDRESS", raising=False)
    args = build_parser().parse_args(["-a", ":9999", "-r", "http://from-flag:8080"])

    apply_flags(args)

    assert os.environ["ACCRUAL_SYSTEM_ADDRESS"] == "http://from-env:8080"
    assert os.environ["RUN_ADDRESS"] == ":9999"
    monkeypatch.delenv("RUN_ADDRESS")

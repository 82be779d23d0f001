"""
Payment Sync CLI Tests

1. --transport-charge accepts non-negative amounts only
2. The exit status is 1 when any supplier fails or the ledgers cannot be read
3. --output writes the JSON report
"""

import argparse
import importlib.util
import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from connectors.backend.client import BackendConnectionError
from reconciliation.engine import SupplierSyncResult, SyncOutcome, SyncReport

SCRIPT = Path(__file__).resolve().parent / "scripts" / "sync_payments.py"


def load_cli():
    spec = importlib.util.spec_from_file_location("sync_payments_cli", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def make_report(*results: SupplierSyncResult) -> SyncReport:
    return SyncReport(
        batch_id="sync-1a2b3c4d",
        started_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        finished_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        results=list(results),
        payments_refreshed=True,
    )


@pytest.fixture
def cli():
    return load_cli()


def run_main(cli, monkeypatch, report=None, error=None, argv=()):
    calls = []

    async def fake_sync(settings, transport_charge=None, supplier_ids=None):
        calls.append((transport_charge, supplier_ids))
        if error is not None:
            raise error
        return report

    monkeypatch.setattr(cli, "sync_payments", fake_sync)
    monkeypatch.setattr("sys.argv", ["sync_payments.py", *argv])
    return cli.main(), calls


class TestTransportChargeArgument:

    def test_accepts_amount(self, cli):
        assert cli._decimal("150") == Decimal("150")
        assert cli._decimal("0") == Decimal("0")

    @pytest.mark.parametrize("value", ["abc", "-1"])
    def test_rejects_bad_amount(self, cli, value):
        with pytest.raises(argparse.ArgumentTypeError):
            cli._decimal(value)


class TestMain:

    def test_exit_status_1_when_a_supplier_fails(self, cli, monkeypatch, capsys):
        report = make_report(
            SupplierSyncResult("S001", SyncOutcome.CREATED),
            SupplierSyncResult("S002", SyncOutcome.FAILED, error="Duplicate key"),
        )

        status, calls = run_main(
            cli, monkeypatch, report=report,
            argv=["--transport-charge", "150", "--supplier", "S001", "--supplier", "S002"],
        )

        assert status == 1
        assert calls == [(Decimal("150"), ["S001", "S002"])]
        out = capsys.readouterr().out
        assert "Failed:    1" in out
        assert "S002: Duplicate key" in out

    def test_exit_status_0_and_json_report(self, cli, monkeypatch, tmp_path):
        output = tmp_path / "sync.json"
        report = make_report(SupplierSyncResult("S001", SyncOutcome.UPDATED, payment_id="9"))

        status, calls = run_main(cli, monkeypatch, report=report, argv=["--output", str(output)])

        assert status == 0
        assert calls == [(None, None)]
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["summary"]["updated"] == 1
        assert data["results"][0]["payment_id"] == "9"

    def test_exit_status_1_when_ledgers_cannot_load(self, cli, monkeypatch, capsys):
        status, _ = run_main(cli, monkeypatch, error=BackendConnectionError("Could not reach backend (timed out)"))

        assert status == 1
        assert "Error: Could not reach backend (timed out)" in capsys.readouterr().err


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

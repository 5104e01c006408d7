"""
Unit tests for the CLI interface.

Tests the command-line interface for the dashboard reporter.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from printfleet.cli import cli
from printfleet.models import ActiveRequest, HistoricalRequest
from printfleet.supabase_store import FetchFailure, StoreSnapshot


def _snapshot() -> StoreSnapshot:
    return StoreSnapshot(
        active=[
            ActiveRequest.model_validate({"estado": "pendiente", "fecha_solicitud": "2025-03-04"}),
            ActiveRequest.model_validate({"estado": "sin stock", "cod_sku": "TN-850"}),
        ],
        historical=[
            HistoricalRequest.model_validate(
                {"estado": "atendido", "cliente": "Acme", "fecha_atencion": "2025-03-10"}
            )
        ],
    )


class TestCLI:
    """Test cases for the CLI commands."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self) -> None:
        result = self.runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "printfleet operations dashboard CLI" in result.output

    @patch("printfleet.supabase_store.SupabaseStore.fetch_snapshot")
    def test_report_json_as_of_date(self, mock_fetch) -> None:
        mock_fetch.return_value = _snapshot()
        result = self.runner.invoke(cli, ["report", "--as-of", "15/03/2025", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["kpis"]["pending"] == 1
        assert data["kpis"]["fulfilled_this_month"] == 1
        assert data["monthly"][-1]["label"] == "Mar"
        assert data["monthly"][-1]["count"] == 1
        assert data["top_clients"] == [{"key": "Acme", "count": 1}]

    @patch("printfleet.supabase_store.SupabaseStore.fetch_snapshot")
    def test_report_formatted_output(self, mock_fetch) -> None:
        mock_fetch.return_value = _snapshot()
        result = self.runner.invoke(cli, ["report", "--as-of", "2025-03-15"])

        assert result.exit_code == 0, result.output
        assert "Pending:" in result.output
        assert "1. TN-850 (1)" in result.output
        assert "Mar 2025: 1" in result.output

    @patch("printfleet.supabase_store.SupabaseStore.fetch_snapshot")
    def test_report_store_failure_exits_with_message(self, mock_fetch) -> None:
        mock_fetch.side_effect = FetchFailure("Data store rejected read of requerimiento (HTTP 500)")
        result = self.runner.invoke(cli, ["report"])

        assert result.exit_code == 1
        assert "Could not load dashboard data" in result.output

    def test_report_rejects_bad_as_of(self) -> None:
        result = self.runner.invoke(cli, ["report", "--as-of", "31/02/2025"])
        assert result.exit_code == 2
        assert "Día inválido para 2/2025" in result.output

    @pytest.mark.parametrize(
        ("text", "expected", "code"),
        [
            ("29/02/2024", "2024-02-29", 0),
            ("29/02/2023", "Día inválido para 2/2023", 1),
            ("2024-02-29", "Formato inválido. Use dd/mm/yyyy", 1),
            ("01/01/0000", "Año inválido", 1),
        ],
    )
    def test_check_date(self, text: str, expected: str, code: int) -> None:
        result = self.runner.invoke(cli, ["check-date", text])
        assert result.exit_code == code
        assert expected in result.output

"""
Tests for the command line entry point.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src import main as cli
from src.core.errors import CredentialError
from src.core.models import Fractal, FractalType
from tests.helpers import make_candles


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("symbol: XRPUSDT\ninterval: 1m\norder_quantity: 5\ncandle_limit: 50\n")
    return str(path)


@pytest.fixture
def fake_gateway():
    gateway = AsyncMock()
    gateway.__aenter__.return_value = gateway
    gateway.__aexit__.return_value = False
    return gateway


def run_cli(argv, gateway):
    with patch.object(cli, "load_credentials", return_value=("key", "secret")), \
            patch.object(cli.BinanceGateway, "from_config", return_value=gateway), \
            patch.object(cli, "configure_logging"):
        return cli.main(argv)


class TestParser:
    """Test argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_candles_limit(self):
        args = cli.build_parser().parse_args(["candles", "--limit", "20"])
        assert args.command == "candles"
        assert args.limit == 20


class TestCommands:
    """Test one-shot commands."""

    def test_ping(self, config_file, fake_gateway, capsys):
        fake_gateway.server_time.return_value = 1700000000000

        assert run_cli(["--config", config_file, "ping"], fake_gateway) == 0

        output = json.loads(capsys.readouterr().out)
        assert output == {"ok": True, "server_time": 1700000000000}

    def test_candles_default_limit_from_config(self, config_file, fake_gateway, capsys):
        fake_gateway.fetch_candles.return_value = make_candles([1.0, 2.0])

        assert run_cli(["--config", config_file, "candles"], fake_gateway) == 0

        fake_gateway.fetch_candles.assert_awaited_once_with("XRPUSDT", "1m", 50)
        output = json.loads(capsys.readouterr().out)
        assert [row["close"] for row in output] == [1.0, 2.0]

    def test_fractals(self, config_file, fake_gateway, capsys):
        fake_gateway.fetch_candles.return_value = make_candles([1.0, 2.0, 5.0, 2.0, 1.0])

        assert run_cli(["--config", config_file, "fractals"], fake_gateway) == 0

        output = json.loads(capsys.readouterr().out)
        assert output == [Fractal(index=2, type=FractalType.UP, value=5.5).model_dump(mode="json")]
        assert output[0]["type"] == "up"

    def test_position_risk_flat(self, config_file, fake_gateway, capsys):
        fake_gateway.fetch_position_risk.return_value = None

        assert run_cli(["--config", config_file, "position-risk"], fake_gateway) == 0
        assert capsys.readouterr().out == ""

    def test_credential_error_exit_code(self, config_file):
        with patch.object(cli, "load_credentials", side_effect=CredentialError("missing")), \
                patch.object(cli, "configure_logging"):
            assert cli.main(["--config", config_file, "balance"]) == 1

    def test_missing_config_exit_code(self, tmp_path):
        with patch.object(cli, "configure_logging"):
            assert cli.main(["--config", str(tmp_path / "nope.yaml"), "ping"]) == 1


class TestConfigureLogging:
    """Test loguru sink setup."""

    def test_file_sink_added(self, tmp_path):
        from src.core.config import TraderConfig

        config = TraderConfig(
            order_quantity=1,
            logging={"level": "DEBUG", "file": str(tmp_path / "trader.log")},
        )

        with patch.object(cli, "logger", MagicMock()) as mock_logger:
            cli.configure_logging(config)

        mock_logger.remove.assert_called_once()
        assert mock_logger.add.call_count == 2
        file_call = mock_logger.add.call_args_list[1]
        assert file_call.args[0] == str(tmp_path / "trader.log")
        assert file_call.kwargs["rotation"] == "10 MB"

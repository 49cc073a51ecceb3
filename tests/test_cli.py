import pytest
from typer.testing import CliRunner

from main import EXIT_APPLY_ERROR, EXIT_INPUT_ERROR, EXIT_OK, app

runner = CliRunner()

HEADER = "client,available,held,total,locked"


@pytest.fixture
def write_csv(tmp_path):
    def _write(*rows):
        path = tmp_path / "transactions.csv"
        path.write_text("\n".join(("type,client,tx,amount",) + rows) + "\n")
        return path
    return _write


def invoke(path):
    return runner.invoke(app, ["--env", "testing", str(path)])


def table(result):
    lines = result.stdout.splitlines()
    return lines[lines.index(HEADER):]


class TestCommandLine:
    """Test the batch command end to end."""

    def test_balances_written_to_stdout(self, write_csv):
        path = write_csv(
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 1.0",
        )

        result = invoke(path)

        assert result.exit_code == EXIT_OK
        assert table(result) == [
            HEADER,
            "1,1.5000,0.0000,1.5000,false",
            "2,1.0000,0.0000,1.0000,false",
        ]

    def test_dispute_lifecycle(self, write_csv):
        path = write_csv(
            "deposit,1,1,5.0",
            "deposit,2,2,3.0",
            "dispute,1,1,",
            "dispute,2,2,",
            "resolve,2,2,",
            "chargeback,1,1,",
            "dispute,1,99,",
        )

        result = invoke(path)

        assert result.exit_code == EXIT_OK
        assert table(result) == [
            HEADER,
            "1,0.0000,0.0000,0.0000,true",
            "2,3.0000,0.0000,3.0000,false",
        ]

    def test_fatal_apply_error_keeps_accumulated_balances(self, write_csv):
        """The run stops at the failing record but still reports balances."""
        path = write_csv(
            "deposit,1,1,5.0",
            "withdrawal,1,2,10.0",
            "deposit,1,3,1.0",
        )

        result = invoke(path)

        assert result.exit_code == EXIT_APPLY_ERROR
        assert "insufficient funds" in result.output
        assert table(result) == [HEADER, "1,5.0000,0.0000,5.0000,false"]

    def test_duplicate_transaction_is_fatal(self, write_csv):
        path = write_csv(
            "deposit,1,1,5.0",
            "deposit,1,1,5.0",
        )

        result = invoke(path)

        assert result.exit_code == EXIT_APPLY_ERROR
        assert "already exists" in result.output

    def test_decode_error_writes_no_table(self, write_csv):
        path = write_csv(
            "deposit,1,1,5.0",
            "transfer,1,2,5.0",
        )

        result = invoke(path)

        assert result.exit_code == EXIT_INPUT_ERROR
        assert "Reading or decoding transaction" in result.output
        assert HEADER not in result.stdout

    def test_invalid_utf8_input(self, tmp_path):
        """Undecodable bytes end the run with the input error code."""
        path = tmp_path / "transactions.csv"
        path.write_bytes(b"type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2,\xff\xfe\n")

        result = invoke(path)

        assert result.exit_code == EXIT_INPUT_ERROR
        assert "Reading or decoding transaction" in result.output
        assert HEADER not in result.stdout

    def test_oversized_amount_is_rejected(self, write_csv):
        """Amounts too large to render are refused while reading."""
        path = write_csv("deposit,1,1,1000000000000000000000000")

        result = invoke(path)

        assert result.exit_code == EXIT_INPUT_ERROR
        assert "Reading or decoding transaction" in result.output

    def test_largest_amounts_are_rendered(self, write_csv):
        path = write_csv(
            "deposit,1,1,999999999999.9999",
            "deposit,1,2,999999999999.9999",
        )

        result = invoke(path)

        assert result.exit_code == EXIT_OK
        assert table(result) == [HEADER, "1,1999999999999.9998,0.0000,1999999999999.9998,false"]

    def test_missing_file(self, tmp_path):
        result = invoke(tmp_path / "missing.csv")

        assert result.exit_code == EXIT_INPUT_ERROR
        assert "does not exist" in result.output

    def test_missing_argument(self):
        result = runner.invoke(app, [])

        assert result.exit_code != EXIT_OK

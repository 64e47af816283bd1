"""Tests for the marketwire CLI credential helpers."""

from click.testing import CliRunner

from marketwire.auth.jwt import role_from_payload, user_id_from_payload, verify_token
from marketwire.auth.tickets import verify_ticket
from marketwire.cli.main import cli


def test_issue_token():
    result = CliRunner().invoke(cli, ["issue-token", "42", "--role", "admin"])
    assert result.exit_code == 0
    payload = verify_token(result.output.strip())
    assert user_id_from_payload(payload) == 42
    assert role_from_payload(payload) == "admin"


def test_issue_token_rejects_unknown_role():
    result = CliRunner().invoke(cli, ["issue-token", "42", "--role", "root"])
    assert result.exit_code != 0


def test_issue_ticket():
    result = CliRunner().invoke(cli, ["issue-ticket", "7"])
    assert result.exit_code == 0
    assert verify_ticket(result.output.strip()).user_id == 7


def test_issue_ticket_needs_positive_id():
    result = CliRunner().invoke(cli, ["issue-ticket", "0"])
    assert result.exit_code != 0
    assert "must be positive" in result.output

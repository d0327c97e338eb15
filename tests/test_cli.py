import io
import json
from unittest.mock import patch

import httpx
import pytest

from codegen_relay import cli
from codegen_relay.client.api import RelayClient
from codegen_relay.client.views import BACKEND_UNREACHABLE, EMPTY_PSEUDOCODE


class Relay:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return self.response


def patched_client(relay):
    def factory(url, timeout):
        return RelayClient(url, timeout=timeout, transport=httpx.MockTransport(relay))

    return patch("codegen_relay.cli.RelayClient", side_effect=factory)


class TestCli:
    def test_generate_prints_code(self, capsys):
        relay = Relay(httpx.Response(200, json={"code": "print('hello')"}))

        with patched_client(relay):
            exit_code = cli.main(["generate", "print hello", "--language", "python"])

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == "print('hello')"
        assert str(relay.requests[0].url) == "http://localhost:5000/generate"
        assert json.loads(relay.requests[0].content) == {
            "pseudocode": "print hello",
            "language": "python",
        }

    def test_generate_empty_input(self, capsys):
        relay = Relay(httpx.Response(200, json={"code": "x"}))

        with patched_client(relay):
            exit_code = cli.main(["generate", "   "])

        assert exit_code == 1
        assert EMPTY_PSEUDOCODE in capsys.readouterr().err
        assert relay.requests == []

    def test_generate_backend_down(self, capsys):
        relay = Relay(exc=httpx.ConnectError("connection refused"))

        with patched_client(relay):
            exit_code = cli.main(["generate", "print hello", "--url", "http://relay.test"])

        assert exit_code == 1
        assert BACKEND_UNREACHABLE in capsys.readouterr().err

    def test_solve_reads_stdin(self, capsys):
        relay = Relay(httpx.Response(200, json={"solution": "Add them."}))

        with patched_client(relay), patch("sys.stdin", io.StringIO("sum two numbers")):
            exit_code = cli.main(["solve", "-"])

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == "Add them."
        assert json.loads(relay.requests[0].content) == {"problemStatement": "sum two numbers"}

    def test_unknown_language_rejected(self):
        with pytest.raises(SystemExit):
            cli.main(["generate", "print hello", "--language", "cobol"])

    def test_serve_runs_uvicorn(self):
        with patch("uvicorn.run") as mock_run:
            exit_code = cli.main(["serve", "--host", "127.0.0.1", "--port", "8123"])

        assert exit_code == 0
        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["host"] == "127.0.0.1"
        assert mock_run.call_args.kwargs["port"] == 8123

    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 0
        assert "usage" in capsys.readouterr().out

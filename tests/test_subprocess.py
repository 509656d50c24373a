"""Tests for providers/subprocess.py -- the one way providers run external tools."""

from __future__ import annotations

import signal
from unittest.mock import AsyncMock, MagicMock, patch

from pkgtap.providers.subprocess import run_command

_EXEC = "pkgtap.providers.subprocess.asyncio.create_subprocess_exec"


def _proc(returncode: int | None = 0, stdout: bytes = b"", stderr: bytes = b"") -> AsyncMock:
    proc = AsyncMock()
    proc.returncode = returncode
    proc.pid = 4242
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock()
    proc.kill = MagicMock()
    return proc


# ═══════════════════════════════════════════════════════════════════
# Normal execution
# ═══════════════════════════════════════════════════════════════════


class TestRunCommand:
    async def test_returns_exit_code_and_output(self):
        with patch(_EXEC, return_value=_proc(3, b"out", b"err")):
            assert await run_command(["tool", "--flag"]) == (3, "out", "err")

    async def test_exec_is_called_without_a_shell(self):
        with patch(_EXEC, return_value=_proc()) as mock_exec:
            await run_command(["npm", "install", "a b"])
        args, kwargs = mock_exec.call_args
        assert args == ("npm", "install", "a b")
        assert kwargs["start_new_session"] is True

    async def test_none_returncode_is_zero(self):
        with patch(_EXEC, return_value=_proc(None, b"ok")):
            code, _, _ = await run_command(["true"])
        assert code == 0

    async def test_env_is_layered_over_process_env(self, monkeypatch):
        monkeypatch.setenv("PKGTAP_TEST_BASE", "kept")
        with patch(_EXEC, return_value=_proc()) as mock_exec:
            await run_command(["go", "install"], env={"GOBIN": "/tmp/gobin"})
        env = mock_exec.call_args.kwargs["env"]
        assert env["GOBIN"] == "/tmp/gobin"
        assert env["PKGTAP_TEST_BASE"] == "kept"

    async def test_no_env_inherits(self):
        with patch(_EXEC, return_value=_proc()) as mock_exec:
            await run_command(["ls"])
        assert mock_exec.call_args.kwargs["env"] is None

    async def test_cwd_is_stringified(self, tmp_path):
        with patch(_EXEC, return_value=_proc()) as mock_exec:
            await run_command(["ls"], cwd=tmp_path)
        assert mock_exec.call_args.kwargs["cwd"] == str(tmp_path)

    async def test_output_is_truncated(self):
        with patch(_EXEC, return_value=_proc(0, b"x" * 5000, b"y" * 5000)):
            _, out, err = await run_command(["big"])
        assert len(out) == 2000
        assert len(err) == 2000

    async def test_invalid_utf8_is_replaced(self):
        with patch(_EXEC, return_value=_proc(0, b"caf\xff")):
            _, out, _ = await run_command(["cmd"])
        assert out == "caf\ufffd"

    async def test_missing_executable(self):
        with patch(_EXEC, side_effect=FileNotFoundError):
            code, out, err = await run_command(["no-such-tool", "x"])
        assert code == 127
        assert out == ""
        assert err == "Command not found: no-such-tool"


# ═══════════════════════════════════════════════════════════════════
# Timeouts
# ═══════════════════════════════════════════════════════════════════


class TestRunCommandTimeout:
    async def test_kills_process_group(self):
        proc = _proc()
        proc.communicate = AsyncMock(side_effect=TimeoutError)

        with (
            patch(_EXEC, return_value=proc),
            patch("pkgtap.providers.subprocess.os.getpgid", return_value=4242),
            patch("pkgtap.providers.subprocess.os.killpg") as mock_killpg,
        ):
            code, out, err = await run_command(["cargo", "install", "x"], timeout=1.5)

        assert (code, out) == (-1, "")
        assert err == "Command timed out after 1.5s"
        mock_killpg.assert_called_once_with(4242, signal.SIGKILL)
        proc.wait.assert_awaited_once()

    async def test_falls_back_to_kill_when_group_is_gone(self):
        proc = _proc()
        proc.communicate = AsyncMock(side_effect=TimeoutError)

        with (
            patch(_EXEC, return_value=proc),
            patch(
                "pkgtap.providers.subprocess.os.getpgid", side_effect=ProcessLookupError
            ),
        ):
            code, _, _ = await run_command(["slow"], timeout=0.1)

        assert code == -1
        proc.kill.assert_called_once()

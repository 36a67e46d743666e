"""Tests for agent process execution."""

import io
import sys

import pytest

from ticket_runner.agents import AgentCommand
from ticket_runner.invoker import AgentInvocationError, AgentInvoker


def _python(script, stdin=None):
    return AgentCommand(argv=[sys.executable, "-c", script], stdin=stdin)


@pytest.fixture
def console():
    """Capture console output."""
    return io.StringIO()


@pytest.fixture
def invoker(tmp_path, console):
    """Create an invoker running in a temporary directory."""
    return AgentInvoker(tmp_path, console=console)


class TestAgentInvoker:
    """Tests for AgentInvoker.run."""

    def test_tees_output_to_console_and_log(self, invoker, console, tmp_path):
        """Test output is captured, printed and logged identically."""
        log_path = tmp_path / "1.log"

        result = invoker.run(_python("print('line one'); print('line two')"), log_path)

        assert result.exit_code == 0
        assert result.output == "line one\nline two\n"
        assert console.getvalue() == result.output
        assert log_path.read_text() == result.output

    def test_prompt_written_to_stdin(self, invoker, tmp_path):
        """Test the prompt is fed on stdin when the command provides one."""
        script = "import sys; print('got:' + sys.stdin.read())"

        result = invoker.run(_python(script, stdin="hello agent"), tmp_path / "1.log")

        assert "got:hello agent" in result.output

    def test_no_stdin_reads_eof(self, invoker, tmp_path):
        """Test commands without stdin see an immediately closed input."""
        script = "import sys; print(repr(sys.stdin.read()))"

        result = invoker.run(_python(script), tmp_path / "1.log")

        assert result.output.strip() == "''"

    def test_stderr_is_merged(self, invoker, tmp_path):
        """Test stderr is part of the captured output."""
        script = "import sys; sys.stderr.write('oops\\n')"

        result = invoker.run(_python(script), tmp_path / "1.log")

        assert "oops" in result.output

    def test_nonzero_exit_is_data(self, invoker, tmp_path):
        """Test a failing agent returns its exit code."""
        result = invoker.run(_python("import sys; print('bye'); sys.exit(3)"), tmp_path / "1.log")

        assert result.exit_code == 3
        assert result.output == "bye\n"

    def test_runs_in_working_directory(self, invoker, tmp_path):
        """Test the agent starts in the configured directory."""
        result = invoker.run(_python("import os; print(os.getcwd())"), tmp_path / "1.log")

        assert result.output.strip() == str(tmp_path)

    def test_log_truncated_each_attempt(self, invoker, tmp_path):
        """Test a previous attempt's log is overwritten."""
        log_path = tmp_path / "1.log"
        log_path.write_text("old attempt\n")

        invoker.run(_python("print('new attempt')"), log_path)

        assert log_path.read_text() == "new attempt\n"

    def test_missing_executable(self, invoker, tmp_path):
        """Test a missing binary raises AgentInvocationError."""
        command = AgentCommand(argv=[str(tmp_path / "no-such-agent")])

        with pytest.raises(AgentInvocationError, match="start"):
            invoker.run(command, tmp_path / "1.log")

    def test_log_file_cannot_be_created(self, invoker, tmp_path):
        """Test an unwritable log path raises AgentInvocationError."""
        with pytest.raises(AgentInvocationError, match="create log file"):
            invoker.run(_python("print('x')"), tmp_path / "missing" / "1.log")

    def test_large_prompt_while_child_prints(self, invoker, tmp_path):
        """Test a prompt bigger than the pipe buffer does not deadlock a chatty child."""
        script = (
            "import sys\n"
            "sys.stdout.write('x' * 200000 + '\\n')\n"
            "sys.stdout.flush()\n"
            "print('read', len(sys.stdin.read()))"
        )
        prompt = "p" * 1_000_000

        result = invoker.run(_python(script, stdin=prompt), tmp_path / "1.log")

        assert result.exit_code == 0
        assert result.output.endswith("read 1000000\n")

    def test_child_ignoring_stdin(self, invoker, tmp_path):
        """Test a child that exits without reading its prompt is not an error."""
        result = invoker.run(_python("print('early')", stdin="q" * 1_000_000), tmp_path / "1.log")

        assert result.exit_code == 0
        assert result.output == "early\n"

    def test_log_keeps_raw_bytes(self, invoker, console, tmp_path):
        """Test invalid UTF-8 reaches the log unchanged and is replaced only in captured text."""
        log_path = tmp_path / "1.log"
        script = "import sys; sys.stdout.buffer.write(b'ok \\xff\\xfe end\\n')"

        result = invoker.run(_python(script), log_path)

        assert log_path.read_bytes() == b"ok \xff\xfe end\n"
        assert result.output == "ok \ufffd\ufffd end\n"
        assert console.getvalue() == result.output

import pytest

from teamchat.tools.code_executor import CodeBlockExecutor, extract_code_blocks, extract_file_blocks
from teamchat.tools.process_runner import python_runner


class RecordingRunner:
    def __init__(self):
        self.calls = []
        self.timeouts = []

    def run(self, command, workdir, timeout=None):
        self.calls.append((command, workdir))
        self.timeouts.append(timeout)
        return f"out:{command}"


def test_executes_block_and_keeps_output_under_limit(tmp_path):
    executor = CodeBlockExecutor(python_runner(), tmp_path, "```python", max_output=500)
    result = executor.execute("Run this:\n```python\nprint('hi')\n```")

    assert result is not None
    assert "hi" in result
    assert len(result) <= 500


def test_text_without_marker_means_no_executable_content(tmp_path):
    runner = RecordingRunner()
    executor = CodeBlockExecutor(runner, tmp_path, "```bash")

    assert executor.execute("no code here, only ```python\nprint(1)\n```") is None
    assert runner.calls == []


def test_report_format(tmp_path):
    executor = CodeBlockExecutor(RecordingRunner(), tmp_path, "```bash")
    report = executor.execute("```bash\necho a\n```")

    assert report == (
        "// [BASH_CODE_BLOCK_EXECUTION]\n"
        "### Executing result for code block 0\n"
        "out:echo a\n"
        "### End of executing result ###\n"
    )


def test_blocks_run_sequentially_in_text_order(tmp_path):
    runner = RecordingRunner()
    executor = CodeBlockExecutor(runner, tmp_path, "```bash", max_output=10_000)
    report = executor.execute("first\n```bash\necho A\n```\nthen\n```bash\necho B\n```")

    assert [command for command, _ in runner.calls] == ["echo A", "echo B"]
    assert all(workdir == tmp_path for _, workdir in runner.calls)
    assert report.index("out:echo A") < report.index("out:echo B")
    assert "code block 0" in report and "code block 1" in report


def test_truncation_is_a_plain_prefix_cut(tmp_path):
    text = "```bash\necho one\n```\n```bash\necho two\n```"
    full = CodeBlockExecutor(RecordingRunner(), tmp_path, "```bash", max_output=10_000).execute(text)
    cut = CodeBlockExecutor(RecordingRunner(), tmp_path, "```bash", max_output=45).execute(text)

    assert len(full) > 45
    assert cut == full[:45]


def test_extract_code_blocks_skips_preamble_unclosed_and_empty():
    text = "intro ``` not a block\n```bash\n  ls  \n```\n```bash\n\n```\n```bash\necho dangling"
    assert extract_code_blocks(text, "```bash") == ["ls"]


def test_extract_file_blocks():
    text = "Write this:\n```file[src/app.py]\nprint('app')\n```\nand\n```file[README.md]\n# Title\n```"
    assert extract_file_blocks(text) == [("src/app.py", "print('app')\n"), ("README.md", "# Title\n")]


def test_empty_prefix_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        CodeBlockExecutor(RecordingRunner(), tmp_path, "")


def test_timeout_is_shared_across_blocks(tmp_path):
    runner = RecordingRunner()
    CodeBlockExecutor(runner, tmp_path, "```bash", max_output=10_000).execute(
        "```bash\necho A\n```\n```bash\necho B\n```", timeout=10.0
    )

    first, second = runner.timeouts
    assert 0 < second <= first <= 10.0


def test_without_timeout_runner_limit_applies(tmp_path):
    runner = RecordingRunner()
    CodeBlockExecutor(runner, tmp_path, "```bash").execute("```bash\necho A\n```")
    assert runner.timeouts == [None]

"""
conftest.py - Pytest fixtures for injectfix tests
"""

import tempfile
from pathlib import Path

import pytest
import yaml

TESTDATA_DIR = Path(__file__).parent / "testdata"


def read_testdata(name: str) -> str:
    """Read a fixture file exactly as stored."""
    with open(TESTDATA_DIR / name, "r", encoding="utf-8", newline="") as f:
        return f.read()


@pytest.fixture
def temp_dir():
    """Create a temporary directory that is removed after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def vulnerable_workflow_content():
    """Workflow with one sink, one conditional and one comment."""
    return """name: Comment bot

on:
  issue_comment:
    types: [created]

jobs:
  bot:
    if: ${{ contains(github.event.comment.body, '/run') }}
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      # echo "${{ github.event.comment.body }}" would be unsafe
      - name: Run command
        run: yarn cmd "${{ github.event.comment.body }}"
"""


@pytest.fixture
def vulnerable_workflow_fixed_content():
    """Expected result of patching vulnerable_workflow_content."""
    return """name: Comment bot

on:
  issue_comment:
    types: [created]

jobs:
  bot:
    if: ${{ contains(github.event.comment.body, '/run') }}
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      # echo "${{ github.event.comment.body }}" would be unsafe
      - name: Run command
        env:
          COMMENT_BODY: ${{ github.event.comment.body }}
        run: yarn cmd "$COMMENT_BODY"
"""


@pytest.fixture
def safe_workflow_content():
    """Workflow that already routes untrusted input through env."""
    return """name: Safe

on:
  issues:

jobs:
  greet:
    runs-on: ubuntu-latest
    steps:
      - name: Greet
        env:
          ISSUE_TITLE: ${{ github.event.issue.title }}
        run: echo "$ISSUE_TITLE"
"""


@pytest.fixture
def mock_repo(temp_dir, vulnerable_workflow_content, safe_workflow_content):
    """Create a mock repository with one vulnerable and one safe workflow."""
    workflows_dir = Path(temp_dir) / ".github" / "workflows"
    workflows_dir.mkdir(parents=True, exist_ok=True)

    (workflows_dir / "bot.yml").write_text(vulnerable_workflow_content)
    (workflows_dir / "safe.yaml").write_text(safe_workflow_content)
    (Path(temp_dir) / "README.md").write_text("# Mock Repository\n")

    return temp_dir


@pytest.fixture
def vulnerable_workflow_file(mock_repo):
    """Path of the vulnerable workflow inside mock_repo."""
    return str(Path(mock_repo) / ".github" / "workflows" / "bot.yml")


@pytest.fixture
def config_file(temp_dir):
    """Write a config file that adds a custom untrusted context."""
    config_path = Path(temp_dir) / "injectfix.yml"
    config = {
        "extra_contexts": ["event.inputs.message"],
        "auto_fix": {"backup": False},
    }

    with open(config_path, "w") as f:
        yaml.dump(config, f)

    return str(config_path)

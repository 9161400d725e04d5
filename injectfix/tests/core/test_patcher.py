"""
test_patcher.py - Tests for workflow patching and the Fixer
"""

import os
from pathlib import Path

import pytest

from injectfix.core.patcher import (
    Fixer,
    fix_repository,
    fix_workflow_file,
    generate_patch,
    patch_workflow,
)
from injectfix.core.taxonomy import ContextTaxonomy

TESTDATA_DIR = Path(__file__).parent.parent / "testdata"

FIXTURE_NAMES = sorted(
    path.stem[: -len("_fixed")] for path in TESTDATA_DIR.glob("*_fixed.yaml")
)


def read_testdata(name):
    with open(TESTDATA_DIR / name, "r", encoding="utf-8", newline="") as f:
        return f.read()


@pytest.mark.parametrize("name", FIXTURE_NAMES)
def test_fixture_pairs(name):
    """Test patching each sample workflow into its expected form."""
    original = read_testdata(f"{name}.yaml")
    expected = read_testdata(f"{name}_fixed.yaml")

    assert generate_patch(original) == expected


@pytest.mark.parametrize("name", FIXTURE_NAMES)
def test_patching_is_idempotent(name):
    """Test that a patched workflow has nothing left to fix."""
    patched = read_testdata(f"{name}_fixed.yaml")

    result = patch_workflow(patched)
    assert not result.changed
    assert result.candidates == []


def test_safe_workflow_is_unchanged():
    """Test that a workflow without sinks is returned as is."""
    original = read_testdata("safeExample.yaml")
    assert generate_patch(original) == original


def test_comment_body_scenario(vulnerable_workflow_content, vulnerable_workflow_fixed_content):
    """Test the yarn cmd comment example, conditional and comment untouched."""
    result = patch_workflow(vulnerable_workflow_content, file_path="bot.yml")

    assert result.patched == vulnerable_workflow_fixed_content
    assert result.changed
    assert result.file_path == "bot.yml"
    assert len(result.candidates) == 1
    assert sorted(o.reason for o in result.ignored) == ["comment", "not_executable"]
    assert result.unfixed == []

    (bindings,) = result.bindings.values()
    assert [binding.name for binding in bindings] == ["COMMENT_BODY"]


def test_unrooted_expression():
    """Test expressions written without the github prefix."""
    original = 'steps:\n  - name: Cmd\n    run: yarn cmd "${{ event.comment.body }}"\n'

    assert generate_patch(original) == (
        "steps:\n  - name: Cmd\n"
        "    env:\n      COMMENT_BODY: ${{ event.comment.body }}\n"
        '    run: yarn cmd "$COMMENT_BODY"\n'
    )


def test_same_expression_in_two_steps():
    """Test that bindings are scoped to each step."""
    original = """steps:
  - run: echo "${{ github.event.issue.title }}"
  - run: echo "${{ github.event.issue.title }}"
"""
    result = patch_workflow(original)

    assert result.patched == """steps:
  - env:
      ISSUE_TITLE: ${{ github.event.issue.title }}
    run: echo "$ISSUE_TITLE"
  - env:
      ISSUE_TITLE: ${{ github.event.issue.title }}
    run: echo "$ISSUE_TITLE"
"""
    assert len(result.bindings) == 2


def test_empty_and_trivial_documents():
    """Test inputs with nothing to scan."""
    assert generate_patch("") == ""
    assert generate_patch("name: empty\n") == "name: empty\n"


def test_missing_trailing_newline():
    """Test patching a file that does not end in a newline."""
    original = "steps:\n  - run: echo ${{ github.head_ref }}"

    assert generate_patch(original) == (
        "steps:\n  - env:\n      HEAD_REF: ${{ github.head_ref }}\n    run: echo $HEAD_REF"
    )


def test_crlf_workflow():
    """Test that CRLF line endings survive patching."""
    original = (
        "jobs:\r\n  build:\r\n    steps:\r\n"
        "      - name: Title\r\n"
        '        run: echo "${{ github.event.issue.title }}"\r\n'
    )

    assert generate_patch(original) == (
        "jobs:\r\n  build:\r\n    steps:\r\n"
        "      - name: Title\r\n"
        "        env:\r\n"
        "          ISSUE_TITLE: ${{ github.event.issue.title }}\r\n"
        '        run: echo "$ISSUE_TITLE"\r\n'
    )


def test_reference_glued_to_identifier():
    """Test braces around a variable followed by word characters."""
    original = "steps:\n  - run: git checkout ${{ github.head_ref }}_backup\n"

    assert generate_patch(original) == (
        "steps:\n  - env:\n      HEAD_REF: ${{ github.head_ref }}\n"
        "    run: git checkout ${HEAD_REF}_backup\n"
    )


def test_powershell_and_cmd_steps():
    """Test shell-specific references."""
    original = """steps:
  - shell: pwsh
    run: Write-Host "${{ github.head_ref }}"
  - shell: cmd
    run: echo ${{ github.head_ref }}
"""

    assert generate_patch(original) == """steps:
  - shell: pwsh
    env:
      HEAD_REF: ${{ github.head_ref }}
    run: Write-Host "$env:HEAD_REF"
  - shell: cmd
    env:
      HEAD_REF: ${{ github.head_ref }}
    run: echo %HEAD_REF%
"""


def test_unsupported_shell_is_left_alone():
    """Test that shells without a known variable syntax are reported."""
    original = """steps:
  - shell: python
    run: print("${{ github.head_ref }}")
"""
    result = patch_workflow(original)

    assert not result.changed
    assert [o.reason for o in result.unfixed] == ["unsupported_shell"]


def test_inline_env_is_left_alone():
    """Test that a flow mapping env block is reported, not rewritten."""
    original = """steps:
  - env: { GREETING: hello }
    run: echo "${{ github.head_ref }}"
"""
    result = patch_workflow(original)

    assert result.patched == original
    assert [o.reason for o in result.unfixed] == ["unsupported_env"]


def test_job_defaults_shell():
    """Test that a step inherits the job's defaults.run.shell."""
    original = """jobs:
  build:
    runs-on: ubuntu-latest
    defaults:
      run:
        shell: pwsh
    steps:
      - run: Write-Host "${{ github.head_ref }}"
"""

    assert generate_patch(original) == """jobs:
  build:
    runs-on: ubuntu-latest
    defaults:
      run:
        shell: pwsh
    steps:
      - env:
          HEAD_REF: ${{ github.head_ref }}
        run: Write-Host "$env:HEAD_REF"
"""


def test_workflow_defaults_shell():
    """Test the workflow-level defaults and a job overriding them."""
    original = """defaults:
  run:
    shell: cmd
jobs:
  a:
    steps:
      - run: echo ${{ github.head_ref }}
  b:
    defaults:
      run:
        shell: bash
    steps:
      - run: echo ${{ github.head_ref }}
"""

    assert generate_patch(original) == """defaults:
  run:
    shell: cmd
jobs:
  a:
    steps:
      - env:
          HEAD_REF: ${{ github.head_ref }}
        run: echo %HEAD_REF%
  b:
    defaults:
      run:
        shell: bash
    steps:
      - env:
          HEAD_REF: ${{ github.head_ref }}
        run: echo $HEAD_REF
"""


def test_windows_runner_shell():
    """Test that steps on a Windows runner get PowerShell references."""
    original = """jobs:
  build:
    runs-on: windows-latest
    steps:
      - run: Write-Host "${{ github.head_ref }}"
      - shell: bash
        run: echo "${{ github.head_ref }}"
"""

    assert generate_patch(original) == """jobs:
  build:
    runs-on: windows-latest
    steps:
      - env:
          HEAD_REF: ${{ github.head_ref }}
        run: Write-Host "$env:HEAD_REF"
      - shell: bash
        env:
          HEAD_REF: ${{ github.head_ref }}
        run: echo "$HEAD_REF"
"""


def test_windows_runner_label_list():
    """Test a runs-on label sequence naming Windows."""
    original = """jobs:
  build:
    runs-on:
      - self-hosted
      - windows
    steps:
      - run: echo ${{ github.head_ref }}
"""
    result = patch_workflow(original)

    assert "run: echo $env:HEAD_REF\n" in result.patched


def test_apostrophe_before_comment():
    """Test that an apostrophe in a script does not hide a trailing comment."""
    original = """steps:
  - run: |
      echo don't # ${{ github.event.issue.title }}
      echo "${{ github.head_ref }}"
"""
    result = patch_workflow(original)

    assert result.patched == """steps:
  - env:
      HEAD_REF: ${{ github.head_ref }}
    run: |
      echo don't # ${{ github.event.issue.title }}
      echo "$HEAD_REF"
"""
    assert [o.reason for o in result.ignored] == ["comment"]


def test_run_without_step_is_left_alone():
    """Test run keys that are mapping values rather than step scripts."""
    job_level = """jobs:
  build:
    run: echo "${{ github.head_ref }}"
"""
    action_input = """steps:
  - uses: some/action@v1
    with:
      run: ${{ github.event.issue.title }}
"""
    for original in (job_level, action_input):
        result = patch_workflow(original)

        assert result.patched == original
        assert result.unfixed == []
        assert [o.reason for o in result.ignored] == ["not_executable"]


def test_unreadable_step_is_reported():
    """Test a run key in a nested sequence under steps."""
    original = """steps:
  - - run: echo "${{ github.head_ref }}"
"""
    result = patch_workflow(original)

    assert result.patched == original
    assert [o.reason for o in result.unfixed] == ["no_step"]


def test_compound_expression_is_reported():
    """Test that compound expressions are flagged but not rewritten."""
    original = """steps:
  - run: |
      echo "${{ github.event.issue.title || 'untitled' }}"
      echo "${{ github.event.issue.body }}"
"""
    result = patch_workflow(original)

    assert result.patched == """steps:
  - env:
      ISSUE_BODY: ${{ github.event.issue.body }}
    run: |
      echo "${{ github.event.issue.title || 'untitled' }}"
      echo "$ISSUE_BODY"
"""
    assert [o.reason for o in result.unfixed] == ["complex_expression"]


def test_multiple_documents():
    """Test that each YAML document is patched on its own."""
    original = (
        "---\nsteps:\n  - run: echo ${{ github.head_ref }}\n"
        "---\nsteps:\n  - run: echo ${{ github.head_ref }}\n"
    )
    fixed_document = "steps:\n  - env:\n      HEAD_REF: ${{ github.head_ref }}\n    run: echo $HEAD_REF\n"

    assert generate_patch(original) == "---\n" + fixed_document + "---\n" + fixed_document


def test_custom_taxonomy():
    """Test patching with extra and ignored contexts."""
    original = """steps:
  - run: |
      echo "${{ inputs.message }}"
      echo "${{ github.head_ref }}"
"""
    taxonomy = ContextTaxonomy.default().extend(["inputs.message"]).without(["head_ref"])

    assert generate_patch(original, taxonomy) == """steps:
  - env:
      INPUTS_MESSAGE: ${{ inputs.message }}
    run: |
      echo "$INPUTS_MESSAGE"
      echo "${{ github.head_ref }}"
"""


def test_fixer_writes_file_with_backup(vulnerable_workflow_file, vulnerable_workflow_fixed_content):
    """Test fixing a workflow file on disk."""
    original = Path(vulnerable_workflow_file).read_text()
    fixer = Fixer({})

    fixed, skipped = fixer.fix_workflow_file(vulnerable_workflow_file)

    assert (fixed, skipped) == (1, 0)
    assert Path(vulnerable_workflow_file).read_text() == vulnerable_workflow_fixed_content
    assert Path(vulnerable_workflow_file + ".bak").read_text() == original
    assert fixer.results[vulnerable_workflow_file].changed


def test_fixer_without_backup(vulnerable_workflow_file):
    """Test that backups can be turned off."""
    fixed, _ = Fixer({"auto_fix": {"backup": False}}).fix_workflow_file(vulnerable_workflow_file)

    assert fixed == 1
    assert not os.path.exists(vulnerable_workflow_file + ".bak")


def test_fixer_dry_run(vulnerable_workflow_file, vulnerable_workflow_content):
    """Test that a dry run reports without writing."""
    fixed, skipped = Fixer({}, dry_run=True).fix_workflow_file(vulnerable_workflow_file)

    assert (fixed, skipped) == (1, 0)
    assert Path(vulnerable_workflow_file).read_text() == vulnerable_workflow_content


def test_fixer_auto_fix_disabled(vulnerable_workflow_file, vulnerable_workflow_content):
    """Test that disabling auto-fix leaves files alone."""
    fixer = Fixer({"auto_fix": {"enabled": False}})
    fixed, skipped = fixer.fix_workflow_file(vulnerable_workflow_file)

    assert (fixed, skipped) == (0, 1)
    assert Path(vulnerable_workflow_file).read_text() == vulnerable_workflow_content


def test_fixer_refuses_failed_verification(
    monkeypatch, vulnerable_workflow_file, vulnerable_workflow_content
):
    """Test that a patch failing verification is not written."""
    monkeypatch.setattr(
        "injectfix.core.patcher.verify_patched_workflow",
        lambda original, patched: (False, "mismatch"),
    )

    fixed, skipped = Fixer({}).fix_workflow_file(vulnerable_workflow_file)

    assert (fixed, skipped) == (0, 1)
    assert Path(vulnerable_workflow_file).read_text() == vulnerable_workflow_content


def test_fixer_interactive_decline(monkeypatch, vulnerable_workflow_file, vulnerable_workflow_content):
    """Test declining the interactive prompt."""
    monkeypatch.setattr("click.confirm", lambda *args, **kwargs: False)

    fixed, skipped = Fixer({}, interactive=True).fix_workflow_file(vulnerable_workflow_file)

    assert (fixed, skipped) == (0, 1)
    assert Path(vulnerable_workflow_file).read_text() == vulnerable_workflow_content


def test_fixer_missing_file(temp_dir):
    """Test that missing files are skipped quietly."""
    assert fix_workflow_file(os.path.join(temp_dir, "missing.yml")) == (0, 0)


def test_fixer_preserves_crlf(temp_dir):
    """Test that files keep their line endings when rewritten."""
    path = Path(temp_dir) / "crlf.yml"
    path.write_bytes(b"on: push\r\njobs:\r\n  a:\r\n    steps:\r\n      - run: echo ${{ github.head_ref }}\r\n")

    fixed, _ = fix_workflow_file(str(path), {"auto_fix": {"backup": False}})

    assert fixed == 1
    assert path.read_bytes() == (
        b"on: push\r\njobs:\r\n  a:\r\n    steps:\r\n"
        b"      - env:\r\n          HEAD_REF: ${{ github.head_ref }}\r\n"
        b"        run: echo $HEAD_REF\r\n"
    )


def test_fix_repository(mock_repo, capsys):
    """Test fixing every workflow in a repository."""
    fixed, skipped = fix_repository(mock_repo, {"auto_fix": {"backup": False}})

    assert (fixed, skipped) == (1, 0)
    assert "Fixed 1 sink(s)" in capsys.readouterr().out

    # A second pass finds nothing
    assert fix_repository(mock_repo, {}) == (0, 0)


def test_fix_repository_dry_run(mock_repo, capsys):
    """Test the dry-run wording."""
    assert fix_repository(mock_repo, {}, dry_run=True) == (1, 0)
    assert "Would fix 1 sink(s)" in capsys.readouterr().out

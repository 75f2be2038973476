from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from sumkeep import cli

from tests.fixtures import TERACOPY_HEADER, manifest_lines, sha256_hex, write_tree


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("SUMKEEP_ALGORITHM", "SUMKEEP_MATCH", "SUMKEEP_HEADER_LINES", "SUMKEEP_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def _answers(monkeypatch, *replies: str) -> list[str]:
    prompts: list[str] = []
    pending = list(replies)

    def _fake_input(prompt: str = "") -> str:
        prompts.append(prompt)
        return pending.pop(0)

    monkeypatch.setattr("builtins.input", _fake_input)
    return prompts


def test_wrong_arity_prints_usage_and_fails(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["hash"])
    assert excinfo.value.code != 0
    assert "usage:" in capsys.readouterr().err


def test_help_works() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--help"])
    assert excinfo.value.code == 0


def test_hash_then_verify_with_flags(tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})

    assert cli.main(["hash", str(root), "-a", "sha256"]) == cli.EXIT_OK
    assert 'New testfile "data.sha256" written successfully.' in capsys.readouterr().out

    assert cli.main(["verify", str(root), "-a", "sha256"]) == cli.EXIT_OK
    assert "Everything is OK." in capsys.readouterr().out


def test_verify_failure_exit_code_and_log(tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    assert cli.main(["hash", str(root), "-a", "md5"]) == cli.EXIT_OK
    (root / "a.txt").write_text("hello!", encoding="utf-8")
    capsys.readouterr()

    rc = cli.main(["verify", str(root / "data.md5")])

    assert rc == cli.EXIT_VERIFY_FAILED
    assert "Verification errors detected" in capsys.readouterr().out
    logs = [p for p in root.iterdir() if p.name.endswith(".error.log")]
    assert len(logs) == 1
    assert logs[0].read_text(encoding="utf-8") == "a.txt: MISMATCH\n"


def test_verify_missing_manifest_is_operation_error(tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    rc = cli.main(["verify", str(root), "-a", "md5"])
    assert rc == cli.EXIT_ERROR
    assert "ERROR:" in capsys.readouterr().err


def test_interactive_algorithm_choice(monkeypatch, tmp_path: Path) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    prompts = _answers(monkeypatch, "2")

    assert cli.main(["hash", str(root)]) == cli.EXIT_OK
    assert prompts == ["Enter your choice (1/2): "]
    assert manifest_lines(root / "data.sha256") == [f"{sha256_hex('hello')}  a.txt"]


def test_nonsense_algorithm_choice(monkeypatch, tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    _answers(monkeypatch, "9")

    assert cli.main(["hash", str(root)]) == cli.EXIT_ERROR
    assert "doesn't make any sense" in capsys.readouterr().err
    assert not (root / "data.md5").exists()


def test_algorithm_from_environment(monkeypatch, tmp_path: Path) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    monkeypatch.setenv("SUMKEEP_ALGORITHM", "sha256")

    assert cli.main(["hash", str(root)]) == cli.EXIT_OK
    assert (root / "data.sha256").exists()


def test_existing_manifest_menu_append(monkeypatch, tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    assert cli.main(["hash", str(root), "-a", "sha256"]) == cli.EXIT_OK
    write_tree(root, {"b.txt": "b"})
    _answers(monkeypatch, "1")
    capsys.readouterr()

    assert cli.main(["hash", str(root), "-a", "sha256"]) == cli.EXIT_OK
    out = capsys.readouterr().out
    assert "  - b.txt" in out
    assert "New files have been hashed and added" in out

    _answers(monkeypatch, "1")
    assert cli.main(["hash", str(root), "-a", "sha256"]) == cli.EXIT_OK
    assert "Testfile update is not needed." in capsys.readouterr().out


def test_existing_manifest_menu_exit(monkeypatch, tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    assert cli.main(["hash", str(root), "-a", "md5"]) == cli.EXIT_OK
    before = (root / "data.md5").read_bytes()
    write_tree(root, {"b.txt": "b"})
    _answers(monkeypatch, "3")

    assert cli.main(["hash", str(root), "-a", "md5"]) == cli.EXIT_OK
    assert "Exited without touching the testfile." in capsys.readouterr().out
    assert (root / "data.md5").read_bytes() == before


def test_overwrite_declined_keeps_manifest(monkeypatch, tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    assert cli.main(["hash", str(root), "-a", "md5"]) == cli.EXIT_OK
    before = (root / "data.md5").read_bytes()
    (root / "a.txt").write_text("changed", encoding="utf-8")
    _answers(monkeypatch, "2", "n")

    assert cli.main(["hash", str(root), "-a", "md5"]) == cli.EXIT_ERROR
    assert "You decided against it and exited." in capsys.readouterr().out
    assert (root / "data.md5").read_bytes() == before


def test_overwrite_with_yes_flag(tmp_path: Path) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    assert cli.main(["hash", str(root), "-a", "sha256"]) == cli.EXIT_OK
    (root / "a.txt").write_text("changed", encoding="utf-8")

    assert cli.main(["hash", str(root), "-a", "sha256", "-m", "overwrite", "-y"]) == cli.EXIT_OK
    assert manifest_lines(root / "data.sha256") == [f"{sha256_hex('changed')}  a.txt"]


def test_match_path_flag(tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"one/x.txt": "1"})
    assert cli.main(["hash", str(root), "-a", "sha256"]) == cli.EXIT_OK
    write_tree(root, {"two/x.txt": "2"})
    capsys.readouterr()

    rc = cli.main(["hash", str(root), "-a", "sha256", "-m", "append", "--match", "path"])

    assert rc == cli.EXIT_OK
    assert "  - two/x.txt" in capsys.readouterr().out


def test_single_file_overwrite_prompt(monkeypatch, tmp_path: Path) -> None:
    target = write_tree(tmp_path, {"disk.img": "v1"}) / "disk.img"
    assert cli.main(["hash", str(target), "-a", "sha256"]) == cli.EXIT_OK
    target.write_text("v2", encoding="utf-8")
    prompts = _answers(monkeypatch, "y")

    assert cli.main(["hash", str(target), "-a", "sha256"]) == cli.EXIT_OK
    assert prompts == ["Do you wish to overwrite it with a new hash? (y/n) "]
    assert manifest_lines(tmp_path / "disk.img.sha256") == [f"{sha256_hex('v2')}  disk.img"]


def test_import_with_yes(tmp_path: Path, capsys) -> None:
    src = tmp_path / "old.sha256"
    sha = "AB12CD34" * 8
    src.write_text(TERACOPY_HEADER + f"{sha} *subdir\\file.txt\n", encoding="utf-8")

    assert cli.main(["import", str(src), "--yes"]) == cli.EXIT_OK
    assert "Conversion complete." in capsys.readouterr().out
    assert src.read_text(encoding="utf-8") == f"{sha.lower()}  subdir/file.txt\n"


def test_import_declined(monkeypatch, tmp_path: Path, capsys) -> None:
    src = tmp_path / "old.md5"
    src.write_text(TERACOPY_HEADER + f"{'AB' * 16} *a.txt\n", encoding="utf-8")
    _answers(monkeypatch, "n")

    assert cli.main(["import", str(src)]) == cli.EXIT_ERROR
    assert "Operation cancelled by the user." in capsys.readouterr().out
    assert not (tmp_path / "old.md5.backup").exists()


def test_import_rejects_extension_before_prompting(tmp_path: Path, capsys) -> None:
    src = tmp_path / "old.txt"
    src.write_text("x", encoding="utf-8")

    assert cli.main(["import", str(src)]) == cli.EXIT_ERROR
    assert "Invalid extension" in capsys.readouterr().err


def test_log_file_records_debug_messages(tmp_path: Path) -> None:
    root = write_tree(tmp_path / "data", {"a.txt": "hello"})
    log_file = tmp_path / "run.log"

    assert cli.main(["hash", str(root), "-a", "md5", "--log-file", str(log_file)]) == cli.EXIT_OK
    cli._setup_logging(False, None)  # release the file handler

    text = log_file.read_text(encoding="utf-8")
    assert "hashed" in text
    assert "data.md5" in text


@pytest.mark.skipif(sys.platform != "linux", reason="needs a filesystem that stores raw bytes")
def test_hash_with_non_utf8_file_name_leaves_no_temp_file(tmp_path: Path, capsys) -> None:
    root = write_tree(tmp_path / "data", {"ok.txt": "fine"})
    (root / os.fsdecode(b"bad\xff.txt")).write_bytes(b"x")

    assert cli.main(["hash", str(root), "-a", "md5"]) == cli.EXIT_ERROR
    assert "not valid UTF-8" in capsys.readouterr().err
    assert sorted(p.name for p in root.iterdir()) == sorted(["ok.txt", os.fsdecode(b"bad\xff.txt")])


def test_negative_header_lines_flag_is_a_usage_error(tmp_path: Path, capsys) -> None:
    src = tmp_path / "old.md5"
    original = TERACOPY_HEADER + f"{'AB' * 16} *one.txt\n{'CD' * 16} *two.txt\n"
    src.write_text(original, encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["import", str(src), "-y", "--header-lines", "-1"])

    assert excinfo.value.code == 2
    assert "--header-lines" in capsys.readouterr().err
    assert src.read_text(encoding="utf-8") == original
    assert not (tmp_path / "old.md5.backup").exists()

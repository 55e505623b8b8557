"""
Command-line interface.

Invariant:
Flags override the configuration file, a bad configuration stops before any
repository is touched, and a confirmed run leaves exactly the planned commits.
"""

from datetime import date
from pathlib import Path

import pytest

from fakeit import cli
from fakeit.config import create_default_config
from fakeit.git import GitBackend

from conftest import requires_git

AUTHOR_ARGS = ["--user-name", "Test User", "--user-email", "test@example.com"]
PLAN_ARGS = ["--seed", "abc", "--end-date", "2024-01-05", "--days", "5", "-c", "5", "-d", "uniform"]


def overrides(*argv: str):
    args = cli.build_parser().parse_args(list(argv))
    return cli.apply_cli_overrides(create_default_config(), args)


def test_parse_date_formats() -> None:
    assert cli.parse_date("2024-02-29") == date(2024, 2, 29)
    assert cli.parse_date("2024/02/29") == date(2024, 2, 29)
    assert cli.parse_date("02/29/2024") == date(2024, 2, 29)


def test_days_counts_back_from_end_date() -> None:
    config = overrides("--end-date", "2024-03-10", "--days", "10")
    assert config.start_date == date(2024, 3, 1)
    assert config.end_date == date(2024, 3, 10)


def test_pattern_flag_selects_pattern_distribution() -> None:
    config = overrides("--pattern", "star", "--pattern-scale", "2")
    assert config.distribution == "pattern"
    assert config.pattern_preset == "star"
    assert config.pattern_scale == 2


def test_explicit_distribution_wins_over_pattern() -> None:
    assert overrides("--pattern", "star", "-d", "uniform").distribution == "uniform"


def test_messages_file(tmp_path) -> None:
    path = tmp_path / "messages.txt"
    path.write_text("One\nTwo\n", encoding="utf-8")
    assert overrides("--messages-file", str(path)).custom_messages == ["One", "Two"]


def test_config_file_with_overrides(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"max_per_day": 2, "branch": "history"}', encoding="utf-8")
    args = cli.build_parser().parse_args(["--config", str(path), "-c", "4"])
    config = cli.apply_cli_overrides(cli.load_config(args.config), args)
    assert config.max_per_day == 4
    assert config.branch == "history"


def test_author_from_git_config(monkeypatch) -> None:
    values = {"user.name": "Git Person", "user.email": "git@example.com"}
    monkeypatch.setattr(cli, "get_git_config", values.get)

    parser = cli.build_parser()
    args = parser.parse_args(["--yes"])
    config = cli.apply_cli_overrides(create_default_config(), args)
    config = cli.configure_git_author(config, args, parser)

    assert config.user_name == "Git Person"
    assert config.user_email == "git@example.com"


def test_missing_author_is_an_error(monkeypatch) -> None:
    monkeypatch.setattr(cli, "get_git_config", lambda key: None)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(PLAN_ARGS + ["--preview"])
    assert excinfo.value.code == 2


def test_invalid_config_exits_with_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(AUTHOR_ARGS + ["--start-date", "2024-02-01", "--end-date", "2024-01-01"])
    assert excinfo.value.code == 2


def test_preview_makes_no_changes(tmp_path, capsys) -> None:
    repo_path = tmp_path / "repo"
    code = cli.main(PLAN_ARGS + AUTHOR_ARGS + ["--repo-path", str(repo_path), "--preview"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Total commits:  21" in out
    assert "Message style:  default (20 messages)" in out
    assert "Sample Commits" in out
    assert "Preview only" in out
    assert not repo_path.exists()


def test_save_config(tmp_path) -> None:
    path = tmp_path / "saved.json"
    cli.main(PLAN_ARGS + AUTHOR_ARGS + ["--preview", "--save-config", str(path)])
    config = cli.load_config(path)
    assert config.seed == "abc"
    assert config.start_date == date(2024, 1, 1)


@requires_git
@pytest.mark.usefixtures("isolated_git")
def test_full_run_creates_planned_commits(tmp_path, capsys) -> None:
    repo_path = tmp_path / "repo"
    code = cli.main(PLAN_ARGS + AUTHOR_ARGS + ["--repo-path", str(repo_path), "--yes"])

    assert code == 0
    backend = GitBackend(Path(repo_path))
    assert backend.total_commit_count() == 21
    assert backend.current_branch() == "main"
    out = capsys.readouterr().out
    assert "Branch:         main" in out
    assert "Commits:        0" in out
    assert "Remote:         none" in out
    assert "Created 21 commits" in out


@requires_git
@pytest.mark.usefixtures("isolated_git")
def test_dirty_repository_is_refused(tmp_path, capsys) -> None:
    repo_path = tmp_path / "repo"
    GitBackend(repo_path).init_repository("main")
    (repo_path / "scratch.txt").write_text("wip", encoding="utf-8")

    code = cli.main(PLAN_ARGS + AUTHOR_ARGS + ["--repo-path", str(repo_path), "--yes"])

    assert code == 1
    assert "not clean" in capsys.readouterr().err


def test_preview_counts_custom_messages(tmp_path, capsys) -> None:
    path = tmp_path / "messages.txt"
    path.write_text("Tidy   the\tparser\n\nShip it\n", encoding="utf-8")

    code = cli.main(PLAN_ARGS + AUTHOR_ARGS + ["--messages-file", str(path), "--preview"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Message style:  default (2 messages)" in out

#!/usr/bin/env python3
"""Tests for the git adapter; git itself is never invoked."""

import subprocess

import git_changes
from git_changes import COMMIT_MARKER, FIELD_SEPARATOR


def log_header(sha, author, date, subject):
    return COMMIT_MARKER + FIELD_SEPARATOR.join([sha, author, date, subject])


class TestParseGitLog:

    def test_commits_and_files(self):
        output = "\n".join([
            log_header("a" * 40, "Ada", "2024-01-01T10:00:00+00:00", "Add user model"),
            "",
            "app/models/user.rb",
            "spec/models/user_spec.rb",
            log_header("b" * 40, "Grace", "2024-01-02T10:00:00+00:00", "Sync service"),
            "",
            "app/services/sync_service.rb",
        ])
        commits = git_changes.parse_git_log(output)
        assert [c.sha[0] for c in commits] == ["a", "b"]
        assert commits[0].author == "Ada"
        assert commits[0].message == "Add user model"
        assert commits[0].files == ["app/models/user.rb", "spec/models/user_spec.rb"]
        assert commits[1].files == ["app/services/sync_service.rb"]

    def test_commit_without_files(self):
        commits = git_changes.parse_git_log(log_header("c" * 40, "Ada", "2024-01-03", "Empty"))
        assert len(commits) == 1
        assert commits[0].files == []

    def test_empty_output(self):
        assert git_changes.parse_git_log("") == []


class TestChangedFiles:

    def test_first_successful_diff_wins(self, monkeypatch, tmp_path):
        calls = []

        def fake_run_git(args, repo_root):
            calls.append(args[-1])
            if args[-1] == "origin/main..HEAD":
                return None
            return "app/models/user.rb\napp/models/user.rb\nconfig/routes.rb\n"

        monkeypatch.setattr(git_changes, "run_git", fake_run_git)
        assert git_changes.get_changed_files(tmp_path) == ["app/models/user.rb", "config/routes.rb"]
        assert calls == ["origin/main..HEAD", "main..HEAD"]

    def test_no_history_degrades_to_empty(self, monkeypatch, tmp_path):
        monkeypatch.setattr(git_changes, "run_git", lambda args, repo_root: None)
        assert git_changes.get_changed_files(tmp_path, "develop") == []
        assert git_changes.get_commits(tmp_path, "develop") == []

    def test_run_git_without_git_binary(self, monkeypatch, tmp_path):
        def missing(*args, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(subprocess, "check_output", missing)
        assert git_changes.run_git(["status"], tmp_path) is None

    def test_run_git_failure(self, monkeypatch, tmp_path):
        def failing(*args, **kwargs):
            raise subprocess.CalledProcessError(128, ["git", "diff"])

        monkeypatch.setattr(subprocess, "check_output", failing)
        assert git_changes.run_git(["diff"], tmp_path) is None


def test_codebase_version(monkeypatch, tmp_path):
    answers = {"--short": "abc1234\n", "--abbrev-ref": "feature/x\n"}
    monkeypatch.setattr(git_changes, "run_git", lambda args, repo_root: answers[args[1]])
    assert git_changes.get_codebase_version(tmp_path) == "abc1234 (feature/x)"


def test_codebase_version_outside_repository(monkeypatch, tmp_path):
    monkeypatch.setattr(git_changes, "run_git", lambda args, repo_root: None)
    assert git_changes.get_codebase_version(tmp_path) == "Unknown (not a git repository)"

"""Tests for the PostgreSQL server detection used to skip integration tests."""

from __future__ import annotations

import subprocess

from pg_binaries import server_binaries_available


def _which(found: dict[str, str]):
    return lambda name: found.get(name)


def _run_stdout(stdout: str):
    def _run(args, **kwargs):
        return subprocess.CompletedProcess(args, 0, stdout=stdout, stderr="")
    return _run


class TestServerBinariesAvailable:
    def test_pg_ctl_on_path(self):
        assert server_binaries_available(which=_which({"pg_ctl": "/usr/bin/pg_ctl"}))

    def test_nothing_installed(self):
        assert not server_binaries_available(which=_which({}))

    def test_client_only_pg_config(self, tmp_path):
        which = _which({"pg_config": "/usr/bin/pg_config"})
        assert not server_binaries_available(which=which, run=_run_stdout(f"{tmp_path}\n"))

    def test_pg_config_bindir_with_pg_ctl(self, tmp_path):
        (tmp_path / "pg_ctl").write_text("")
        which = _which({"pg_config": "/usr/bin/pg_config"})
        assert server_binaries_available(which=which, run=_run_stdout(f"{tmp_path}\n"))

    def test_pg_config_not_runnable(self):
        def _run(args, **kwargs):
            raise OSError("exec format error")

        which = _which({"pg_config": "/usr/bin/pg_config"})
        assert not server_binaries_available(which=which, run=_run)

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from kvstarter import cli
from kvstarter.config import StarterSettings
from kvstarter.errors import LaunchError
from kvstarter.launcher import build_launch_plan, exec_plan
from kvstarter.models import Epoch, LaunchPlan, Resolution

SETTINGS = StarterSettings(bin_dir="/opt/etcd")


@pytest.fixture(autouse=True)
def clean_store_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("ETCD_") or key.startswith("KVSTARTER_"):
            monkeypatch.delenv(key)


@pytest.mark.parametrize(
    "epoch, subdir",
    [(Epoch.V1, "1"), (Epoch.V2, "2"), (Epoch.V2_PROXY, "2")],
)
def test_executable_per_epoch(epoch: Epoch, subdir: str) -> None:
    plan = build_launch_plan(Resolution(epoch), ["-name", "a"], SETTINGS, environ={})
    assert plan.executable == os.path.join("/opt/etcd", subdir, "etcd")
    assert plan.argv == (plan.executable, "-name", "a")


def test_corrective_flags_and_env() -> None:
    resolution = Resolution(
        Epoch.V2_PROXY,
        extra_args=["-initial-cluster", "a=http://p:7001", "-proxy=on"],
        unset_env=["ETCD_DISCOVERY"],
    )
    plan = build_launch_plan(
        resolution,
        ["-data-dir", "/data"],
        SETTINGS,
        environ={"ETCD_DISCOVERY": "https://disc/abc", "PATH": "/bin"},
    )
    assert plan.argv[1:] == ("-data-dir", "/data", "-initial-cluster", "a=http://p:7001", "-proxy=on")
    assert plan.env == {"PATH": "/bin"}


def test_unknown_epoch_has_no_plan() -> None:
    with pytest.raises(LaunchError) as exc:
        build_launch_plan(Resolution(Epoch.UNKNOWN), [], SETTINGS, environ={})
    assert exc.value.code == "UNHANDLED_EPOCH"


def test_exec_failure_is_a_launch_error(tmp_path: Path) -> None:
    missing = str(tmp_path / "2" / "etcd")
    plan = LaunchPlan(epoch=Epoch.V2, executable=missing, argv=(missing,), env={})
    with pytest.raises(LaunchError) as exc:
        exec_plan(plan)
    assert exc.value.code == "EXEC_FAILED"


def test_split_argv() -> None:
    assert cli.split_argv(["-name", "a"]) == ([], ["-name", "a"])
    assert cli.split_argv(["--dry-run", "--", "-name", "a"]) == (["--dry-run"], ["-name", "a"])


def test_cli_dry_run_prints_plan(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--dry-run", "--bin-dir", "/opt/etcd", "--", "-data-dir", str(tmp_path / "new")])
    assert code == 0
    plan = json.loads(capsys.readouterr().out)
    assert plan["epoch"] == "2"
    assert plan["executable"] == os.path.join("/opt/etcd", "2", "etcd")
    assert plan["argv"][1:] == ["-data-dir", str(tmp_path / "new")]


def test_cli_hands_plan_to_exec(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    launched: list[LaunchPlan] = []
    monkeypatch.setattr(cli, "exec_plan", launched.append)
    monkeypatch.setenv("KVSTARTER_BIN_DIR", "/srv/etcd")
    (tmp_path / "data" / "proxy").mkdir(parents=True)

    code = cli.main(["-data-dir", str(tmp_path / "data")])
    assert code == 0
    assert launched[0].epoch is Epoch.V2_PROXY
    assert launched[0].argv[-1] == "-proxy=on"
    assert launched[0].executable == os.path.join("/srv/etcd", "2", "etcd")


def test_cli_configuration_error(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["-no-such-flag"])
    assert code == 1
    err = json.loads(capsys.readouterr().err)
    assert err["error_code"] == "UNKNOWN_FLAG"


def test_cli_unreadable_data_dir_is_fatal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    launched: list[LaunchPlan] = []
    monkeypatch.setattr(cli, "exec_plan", launched.append)
    data = tmp_path / "data"
    data.write_text("not a directory", encoding="utf-8")
    assert cli.main(["-data-dir", str(data)]) == 1
    assert launched == []

from __future__ import annotations

import logging
import os
from typing import Mapping, Sequence

from .config import StarterSettings
from .constants import EPOCH_BIN_SUBDIRS
from .errors import LaunchError
from .models import Epoch, LaunchPlan, Resolution

logger = logging.getLogger(__name__)


def executable_for(epoch: Epoch, settings: StarterSettings) -> str:
    subdir = EPOCH_BIN_SUBDIRS.get(epoch.value)
    if subdir is None:
        raise LaunchError("UNHANDLED_EPOCH", f"no executable for epoch {epoch.value}")
    return os.path.join(settings.bin_dir, subdir, settings.executable)


def build_launch_plan(
    resolution: Resolution,
    args: Sequence[str],
    settings: StarterSettings,
    environ: Mapping[str, str] | None = None,
) -> LaunchPlan:
    environ = os.environ if environ is None else environ
    executable = executable_for(resolution.epoch, settings)
    env = {key: value for key, value in environ.items() if key not in resolution.unset_env}
    argv = (executable, *args, *resolution.extra_args)
    return LaunchPlan(epoch=resolution.epoch, executable=executable, argv=argv, env=env)


def exec_plan(plan: LaunchPlan) -> None:
    """Replace the current process with the planned executable. Never returns on success."""
    logger.info("starting with %s %s", plan.executable, list(plan.argv[1:]))
    try:
        os.execve(plan.executable, list(plan.argv), plan.env)
    except OSError as exc:
        raise LaunchError("EXEC_FAILED", f"failed to execute {plan.executable}: {exc}") from exc

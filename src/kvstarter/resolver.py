from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .adapters.base import DataDirInspector
from .adapters.filesystem import FilesystemInspector
from .config import StoreConfig
from .constants import DEFAULT_DISCOVERY_TIMEOUT, DISCOVERY_ENV
from .errors import DecodeError, DiscoveryError, MarkerNotFoundError, ProbeError, StarterError
from .migration import has_migrated, standby_info_file
from .models import DataDirState, Epoch, Resolution
from .probe import PeerProbe, peers_from_flag

logger = logging.getLogger(__name__)

PROXY_ON = "-proxy=on"


@dataclass
class ResolveContext:
    config: StoreConfig
    inspector: DataDirInspector
    probe: PeerProbe
    discovery_timeout: float
    _state: DataDirState | None = field(default=None, repr=False)

    @property
    def data_dir(self) -> str:
        return self.config.data_dir

    def state(self) -> DataDirState:
        if self._state is None:
            self._state = self.inspector.classify(self.data_dir)
            logger.info("detected data version %s in %s", self._state.value, self.data_dir)
        return self._state


@dataclass(frozen=True)
class Rule:
    name: str
    applies: Callable[[ResolveContext], bool]
    outcome: Callable[[ResolveContext], Resolution]


def _state_is(state: DataDirState) -> Callable[[ResolveContext], bool]:
    return lambda ctx: ctx.state() is state


def _has_v2_flags(ctx: ResolveContext) -> bool:
    return bool(ctx.config.v2_only_values())


def _v2_flags(ctx: ResolveContext) -> Resolution:
    logger.info("v2-only flags set (%s), starting v2", ", ".join(sorted(ctx.config.v2_only_values())))
    return Resolution(Epoch.V2)


def _no_data_dir(ctx: ResolveContext) -> Resolution:
    logger.info("data-dir is not set")
    return Resolution(Epoch.V2)


def _current(ctx: ResolveContext) -> Resolution:
    return Resolution(Epoch.V2)


def _current_proxy(ctx: ResolveContext) -> Resolution:
    if ctx.inspector.exists(standby_info_file(ctx.data_dir)):
        logger.warning("detected standby_info file. Adding %s flag to ensure node runs in v2 proxy mode.", PROXY_ON)
        logger.warning("before removing v0.4 data, %s flag MUST be added.", PROXY_ON)
    return Resolution(Epoch.V2_PROXY, extra_args=[PROXY_ON])


def _legacy(ctx: ResolveContext) -> Resolution:
    try:
        marker = ctx.inspector.decode_standby_marker(standby_info_file(ctx.data_dir))
    except MarkerNotFoundError:
        marker = None
    except DecodeError as exc:
        logger.warning("failed to decode standby info in %s: %s", ctx.data_dir, exc.message)
        return Resolution(Epoch.V1, trail=["standby-info-invalid"])

    if marker is not None and marker.running:
        try:
            epoch = ctx.probe.probe_version(marker.client_urls(), ctx.config.client_tls())
        except ProbeError as exc:
            logger.warning("failed to check start version through peers: %s", exc.message)
            return Resolution(Epoch.V1, trail=["standby-probe-failed"])
        if epoch is Epoch.V2:
            logger.info("standby cluster runs v2, restarting as v2 proxy")
            return Resolution(
                Epoch.V2_PROXY,
                extra_args=["-initial-cluster", marker.initial_cluster(), PROXY_ON],
                unset_env=[DISCOVERY_ENV],
                trail=["standby-cluster-v2"],
            )
        return Resolution(epoch, trail=["standby-cluster-v1"])

    try:
        migrated = has_migrated(ctx.inspector, ctx.data_dir)
    except DecodeError as exc:
        logger.warning("failed to check start version in %s: %s", ctx.data_dir, exc.message)
        return Resolution(Epoch.V1, trail=["legacy-data-invalid"])
    if migrated:
        logger.info("found migration marker in %s", ctx.data_dir)
        return Resolution(Epoch.V2, trail=["migration-marker"])
    return Resolution(Epoch.V1, trail=["no-migration-marker"])


def _absent(ctx: ResolveContext) -> Resolution:
    discovery = ctx.config.discovery
    try:
        discovered = ctx.probe.discover_peers(discovery, ctx.discovery_timeout)
    except DiscoveryError as exc:
        logger.warning("failed to get peers from discovery %s: %s", discovery, exc.message)
        discovered = []
    peer_tls = ctx.config.peer_tls()
    static = peers_from_flag(ctx.config.peers, peer_tls)

    urls = ctx.probe.client_urls_for_peers(discovered + static, peer_tls)
    if not urls:
        logger.info("no peers to ask for the running version")
        return Resolution(Epoch.V2, trail=["no-peers"])
    try:
        epoch = ctx.probe.probe_version(urls, ctx.config.client_tls())
    except ProbeError as exc:
        logger.warning("failed to check start version through peers: %s", exc.message)
        return Resolution(Epoch.V2, trail=["probe-failed"])
    return Resolution(epoch, trail=["peer-version"])


def _unrecognized(ctx: ResolveContext) -> Resolution:
    logger.warning("unrecognized contents in data directory %s", ctx.data_dir)
    return Resolution(Epoch.V2)


RULES: tuple[Rule, ...] = (
    Rule("v2-only-flags", _has_v2_flags, _v2_flags),
    Rule("no-data-dir", lambda ctx: not ctx.data_dir, _no_data_dir),
    Rule("current-format", _state_is(DataDirState.CURRENT), _current),
    Rule("current-proxy-format", _state_is(DataDirState.CURRENT_PROXY), _current_proxy),
    Rule("legacy-format", _state_is(DataDirState.LEGACY), _legacy),
    Rule("absent-data", _state_is(DataDirState.ABSENT), _absent),
    Rule("unrecognized-data", _state_is(DataDirState.UNRECOGNIZED), _unrecognized),
)


class EpochResolver:
    def __init__(
        self,
        inspector: DataDirInspector | None = None,
        probe: PeerProbe | None = None,
        discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
        rules: tuple[Rule, ...] = RULES,
    ) -> None:
        self.inspector = inspector or FilesystemInspector()
        self.probe = probe or PeerProbe()
        self.discovery_timeout = discovery_timeout
        self.rules = rules

    def resolve(self, config: StoreConfig) -> Resolution:
        ctx = ResolveContext(config, self.inspector, self.probe, self.discovery_timeout)
        for rule in self.rules:
            try:
                if not rule.applies(ctx):
                    continue
            except StarterError as exc:
                logger.error("failed to detect data version in %s: %s", ctx.data_dir, exc.message)
                return Resolution(Epoch.UNKNOWN, trail=[rule.name])
            resolution = rule.outcome(ctx)
            resolution.trail.insert(0, rule.name)
            return resolution

        logger.error("unhandled data version in %s", ctx.data_dir)
        return Resolution(Epoch.UNKNOWN)

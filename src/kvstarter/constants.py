from __future__ import annotations

STORE_ENV_PREFIX = "ETCD_"
DISCOVERY_ENV = "ETCD_DISCOVERY"
BIN_DIR_ENV = "KVSTARTER_BIN_DIR"

DEFAULT_EXECUTABLE = "etcd"
DEFAULT_BIN_DIR = "../libexec/etcd/internal_versions"
DEFAULT_DISCOVERY_TIMEOUT = 5.0

# epoch -> subdirectory of the binaries root
EPOCH_BIN_SUBDIRS = {
    "1": "1",
    "2": "2",
    "2.proxy": "2",
}

# flags that only exist in the v2 protocol
V2_ONLY_FLAGS = (
    "initial-cluster",
    "listen-peer-urls",
    "listen-client-urls",
    "proxy",
)

BOOL_FLAGS = {
    "force-new-cluster",
    "version",
    "v",
    "vv",
    "snapshot",
    "trace",
    # v0.4 only
    "force",
    "f",
    "veryverbose",
    "strtrace",
}

STRING_FLAGS = {
    "name",
    "data-dir",
    "snapshot-count",
    "heartbeat-interval",
    "election-timeout",
    "listen-peer-urls",
    "listen-client-urls",
    "max-snapshots",
    "max-wals",
    "cors",
    "initial-advertise-peer-urls",
    "initial-cluster",
    "initial-cluster-state",
    "initial-cluster-token",
    "advertise-client-urls",
    "discovery",
    "discovery-fallback",
    "discovery-proxy",
    "proxy",
    "ca-file",
    "cert-file",
    "key-file",
    "peer-ca-file",
    "peer-cert-file",
    "peer-key-file",
    # v0.4 flags still accepted by the v2 binary
    "addr",
    "bind-addr",
    "peers",
    "peers-file",
    "peer-addr",
    "peer-bind-addr",
    "max-result-buffer",
    "max-retry-attempts",
    "max-cluster-size",
    "cluster-active-size",
    "cluster-remove-delay",
    "cluster-sync-interval",
    "config",
    "cpuprofile",
    "retry-interval",
    "peer-heartbeat-interval",
    "peer-election-timeout",
    "http-read-timeout",
    "http-write-timeout",
    "graphite-host",
}

HELP_FLAGS = {"h", "help"}

TRUE_VALUES = {"1", "t", "T", "true", "TRUE", "True"}
FALSE_VALUES = {"0", "f", "F", "false", "FALSE", "False"}

# legacy (v0.4) data directory layout
LEGACY_STANDBY_INFO = "standby_info"
LEGACY_SNAPSHOT_DIR = "snapshot"
LEGACY_LOG_FILE = "log"
LEGACY_CONF_FILE = "conf"
LEGACY_SNAPSHOT_SUFFIX = ".ss"

# v2 data directory layout
MEMBER_DIR = "member"
SNAP_DIR = "snap"
WAL_DIR = "wal"
PROXY_DIR = "proxy"

MIGRATION_KEY = "/_etcd/next-internal-version"
MIGRATION_VALUE = "2"

LEGACY_SET_COMMAND = "etcd:set"
LEGACY_COMMANDS = {
    "etcd:set",
    "etcd:create",
    "etcd:update",
    "etcd:delete",
    "etcd:compareAndSwap",
    "etcd:compareAndDelete",
    "etcd:sync",
    "etcd:join",
    "etcd:remove",
    "etcd:setClusterConfig",
    "raft:join",
    "raft:leave",
    "raft:nop",
}

DISCOVERY_META_KEYS = {"_config", "_state"}
VERSION_PATH = "/version"
CLIENT_URL_PATH = "/etcdURL"
INTERNAL_VERSION_FIELD = "internalVersion"

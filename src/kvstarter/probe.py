from __future__ import annotations

import json
import logging
import os
import posixpath
import threading
from typing import Any, Callable, Sequence
from urllib.parse import urlsplit, urlunsplit

import requests

from .constants import CLIENT_URL_PATH, DISCOVERY_META_KEYS, INTERNAL_VERSION_FIELD, VERSION_PATH
from .errors import DiscoveryError, ProbeError
from .models import Epoch, TLSInfo
from .utils import join_url, load_json_text, trim_split

logger = logging.getLogger(__name__)

INTERNAL_VERSIONS = {
    "1": Epoch.V1,
    "2": Epoch.V2,
}


def peers_from_flag(value: str, tls: TLSInfo) -> list[str]:
    return [f"{tls.scheme()}://{peer}" for peer in trim_split(value) if peer]


def parse_discovery_nodes(payload: Any) -> list[str]:
    if not isinstance(payload, dict) or not isinstance(payload.get("node"), dict):
        raise DiscoveryError("DISCOVERY_BODY_INVALID", "discovery response has no node")
    peers: list[str] = []
    for node in payload["node"].get("nodes") or []:
        if not isinstance(node, dict):
            continue
        if posixpath.basename(str(node.get("key", ""))) in DISCOVERY_META_KEYS:
            continue
        value = node.get("value")
        if isinstance(value, str) and value:
            peers.append(value)
    return peers


class PeerProbe:
    """Blocking HTTP lookups against the discovery service and cluster peers."""

    def __init__(
        self,
        session_factory: Callable[[], requests.Session] = requests.Session,
        timeout: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.timeout = timeout

    def open_session(self, tls: TLSInfo) -> requests.Session:
        if tls.scheme() == "https":
            for path in (tls.ca_file, tls.cert_file, tls.key_file):
                if path and not os.path.exists(path):
                    raise ProbeError("TLS_CONFIG_INVALID", f"TLS file not found: {path}")
            if not tls.cert_file or not tls.key_file:
                raise ProbeError("TLS_CONFIG_INVALID", "both a certificate and a key file are required")
        session = self.session_factory()
        if tls.scheme() == "https":
            session.verify = tls.ca_file or True
            session.cert = (tls.cert_file, tls.key_file)
        return session

    def discover_peers(self, discovery_url: str, deadline: float) -> list[str]:
        """Fetch the peer URLs registered under a discovery token.

        The lookup (connect, response and body) must finish within
        ``deadline`` seconds of wall-clock time. The request runs on a daemon
        worker; on expiry the session is closed and the worker is abandoned,
        ending at its own per-read timeout.
        """
        if not discovery_url:
            return []
        try:
            parts = urlsplit(discovery_url)
        except ValueError as exc:
            raise DiscoveryError("DISCOVERY_URL_INVALID", f"invalid discovery url {discovery_url}: {exc}") from exc
        if not parts.scheme or not parts.netloc:
            raise DiscoveryError("DISCOVERY_URL_INVALID", f"invalid discovery url {discovery_url}")
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

        session = self.session_factory()
        outcome: dict[str, Any] = {}

        def fetch() -> None:
            try:
                with session.get(url, timeout=deadline) as resp:
                    resp.raise_for_status()
                    outcome["body"] = resp.content
            except (requests.RequestException, OSError) as exc:
                outcome["error"] = exc

        worker = threading.Thread(target=fetch, name="kvstarter-discovery", daemon=True)
        worker.start()
        worker.join(deadline)
        session.close()

        if worker.is_alive():
            raise DiscoveryError("DISCOVERY_TIMEOUT", f"discovery lookup at {url} exceeded {deadline}s")
        if "error" in outcome:
            exc = outcome["error"]
            raise DiscoveryError("DISCOVERY_UNREACHABLE", f"discovery lookup at {url} failed: {exc}") from exc
        if "body" not in outcome:
            raise DiscoveryError("DISCOVERY_UNREACHABLE", f"discovery lookup at {url} returned no response")

        try:
            payload = load_json_text(outcome["body"])
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DiscoveryError("DISCOVERY_BODY_INVALID", f"invalid discovery response from {url}: {exc}") from exc
        return parse_discovery_nodes(payload)

    def client_urls_for_peers(self, peers: Sequence[str], tls: TLSInfo) -> list[str]:
        """Ask each peer for its client URL; unanswered peers stay as candidates."""
        if not peers:
            return []
        # unlike the v0.4 starter, peers are kept when no client can be built
        # or /etcdURL fails, so the /version scan can still ask them directly
        try:
            session = self.open_session(tls)
        except ProbeError as exc:
            logger.warning("new client error: %s", exc.message)
            return list(peers)

        urls: list[str] = []
        with session:
            for peer in peers:
                try:
                    resp = session.get(join_url(peer, CLIENT_URL_PATH), timeout=self.timeout)
                    resp.raise_for_status()
                    client_url = resp.text.strip()
                except requests.RequestException as exc:
                    logger.info("failed to get %s from %s: %s", CLIENT_URL_PATH, peer, exc)
                    urls.append(peer)
                    continue
                urls.append(client_url or peer)
        return urls

    def probe_version(self, urls: Sequence[str], tls: TLSInfo) -> Epoch:
        """Return the epoch reported by the first peer that answers usefully."""
        session = self.open_session(tls)
        with session:
            for url in urls:
                try:
                    resp = session.get(join_url(url, VERSION_PATH), timeout=self.timeout)
                    body = resp.content
                except requests.RequestException as exc:
                    logger.info("failed to get %s from %s: %s", VERSION_PATH, url, exc)
                    continue

                try:
                    payload = load_json_text(body)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    logger.info("failed to unmarshal body %r from %s", body[:200], url)
                    continue
                reported = payload.get(INTERNAL_VERSION_FIELD) if isinstance(payload, dict) else None

                epoch = INTERNAL_VERSIONS.get(reported) if isinstance(reported, str) else None
                if epoch is None:
                    logger.info("unrecognized internal version %s from %s", reported, url)
                    continue
                logger.debug("peer %s reports internal version %s", url, reported)
                return epoch

        raise ProbeError("PEERS_EXHAUSTED", f"failed to get version from urls {list(urls)}")

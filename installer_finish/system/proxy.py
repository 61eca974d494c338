"""Proxy configuration of the installer, written into the target system."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping
from urllib.parse import unquote, urlsplit

from installer_finish.logging import LoggerFactory


SYSCONFIG_PROXY = "etc/sysconfig/proxy"
ROOT_CURLRC = "root/.curlrc"

log = LoggerFactory.for_system()


def _env(environ: Mapping[str, str], name: str) -> str:
    return environ.get(name) or environ.get(name.upper()) or ""


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


@dataclass(frozen=True)
class ProxySettings:
    enabled: bool = False
    http_proxy: str = ""
    https_proxy: str = ""
    ftp_proxy: str = ""
    no_proxy: str = "localhost, 127.0.0.1"
    user: str = ""
    password: str = ""

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> ProxySettings:
        """Read the proxy the installer was started with (http_proxy and friends).

        Credentials embedded in the HTTP proxy URL are split out.
        """
        environ = os.environ if environ is None else environ
        http_proxy = _env(environ, "http_proxy")
        https_proxy = _env(environ, "https_proxy")
        ftp_proxy = _env(environ, "ftp_proxy")
        no_proxy = _env(environ, "no_proxy") or cls.no_proxy

        user = password = ""
        if http_proxy:
            parts = urlsplit(http_proxy)
            if parts.username:
                user = unquote(parts.username)
                password = unquote(parts.password or "")
                netloc = parts.hostname or ""
                if parts.port:
                    netloc += f":{parts.port}"
                http_proxy = parts._replace(netloc=netloc).geturl()

        return cls(
            enabled=bool(http_proxy or https_proxy or ftp_proxy),
            http_proxy=http_proxy,
            https_proxy=https_proxy,
            ftp_proxy=ftp_proxy,
            no_proxy=no_proxy,
            user=user,
            password=password,
        )

    def redacted(self) -> ProxySettings:
        """Copy safe for logging."""
        return replace(self, password="***" if self.password else "")


class ProxyConfig:
    """Export/import of proxy settings and the target's proxy files."""

    def __init__(
        self,
        destdir: str,
        to_target: bool = False,
        environ: Mapping[str, str] | None = None,
    ):
        self.destdir = destdir
        self.to_target = to_target
        self.settings = ProxySettings.from_environ(environ)

    def export(self) -> ProxySettings:
        return self.settings

    def import_(self, settings: ProxySettings) -> None:
        self.settings = settings

    def render_sysconfig(self) -> str:
        s = self.settings
        lines = [
            "## Proxy settings written at the end of the installation",
            f"PROXY_ENABLED={_quote('yes' if s.enabled else 'no')}",
            f"HTTP_PROXY={_quote(s.http_proxy)}",
            f"HTTPS_PROXY={_quote(s.https_proxy)}",
            f"FTP_PROXY={_quote(s.ftp_proxy)}",
            f"NO_PROXY={_quote(s.no_proxy)}",
        ]
        return "\n".join(lines) + "\n"

    def write_sysconfig(self) -> Path:
        path = Path(self.destdir) / SYSCONFIG_PROXY
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_sysconfig(), encoding="utf-8")
        log.info(f"Wrote {path}")
        return path

    def render_curlrc(self) -> str:
        s = self.settings
        lines = ["# Proxy settings written at the end of the installation"]
        proxy = s.http_proxy or s.https_proxy
        if s.enabled and proxy:
            lines.append(f"--proxy {_quote(proxy)}")
            if s.no_proxy:
                lines.append(f"--noproxy {_quote(s.no_proxy.replace(' ', ''))}")
            if s.user:
                lines.append(f"--proxy-user {_quote(f'{s.user}:{s.password}')}")
        return "\n".join(lines) + "\n"

    def write_curlrc(self) -> Path:
        """Write root's .curlrc; it may carry the proxy password, so it is 0600."""
        path = Path(self.destdir) / ROOT_CURLRC
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_curlrc(), encoding="utf-8")
        path.chmod(0o600)
        log.info(f"Wrote {path}")
        return path

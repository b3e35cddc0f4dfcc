# utrace/config.py
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import dotenv_values


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"
    env: str = "development"

    # GeoLite2 databases, opened at startup and closed at shutdown
    geoip_city_db: str = "./data/GeoLite2-City.mmdb"
    geoip_asn_db: str = "./data/GeoLite2-ASN.mmdb"

    traceroute_bin: str = "traceroute"
    ping_bin: str = "ping"
    whois_bin: str = "whois"
    openssl_bin: str = "openssl"
    ping_count: int = 4
    whois_timeout_ms: int = 10000
    ssl_timeout_s: float = 10.0
    # None keeps the probe unbounded, the tool's own timers decide
    traceroute_max_duration: Optional[float] = None

    # proxies in front of us whose X-Forwarded-For entries are trusted
    trust_proxy_hops: int = 0
    commit_sha: str = "unknown"

    rate_limit_window_s: int = 300
    rate_limit_max: Optional[int] = None   # None -> derived from env

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def effective_rate_limit(self) -> int:
        if self.rate_limit_max is not None:
            return self.rate_limit_max
        return 20 if self.is_production else 200

    @property
    def effective_ping_count(self) -> int:
        if self.ping_count <= 0 or self.ping_count > 10:
            return 4
        return self.ping_count

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = ".env") -> "Settings":
        """
        Build settings from a .env file overlaid with the process environment.
        Unset keys keep the dataclass defaults.
        """
        if environ is None:
            values = dict(dotenv_values(dotenv_path)) if dotenv_path and os.path.exists(dotenv_path) else {}
            values.update(os.environ)
        else:
            values = dict(environ)

        d = cls()
        max_duration = values.get("TRACEROUTE_MAX_DURATION")
        rate_max = values.get("RATE_LIMIT_MAX")
        return cls(
            host=values.get("HOST", d.host),
            port=_int(values.get("PORT"), d.port),
            log_level=values.get("LOG_LEVEL", d.log_level),
            env=values.get("UTRACE_ENV", d.env),
            geoip_city_db=values.get("GEOIP_CITY_DB", d.geoip_city_db),
            geoip_asn_db=values.get("GEOIP_ASN_DB", d.geoip_asn_db),
            traceroute_bin=values.get("TRACEROUTE_BIN", d.traceroute_bin),
            ping_bin=values.get("PING_BIN", d.ping_bin),
            whois_bin=values.get("WHOIS_BIN", d.whois_bin),
            openssl_bin=values.get("OPENSSL_BIN", d.openssl_bin),
            ping_count=_int(values.get("PING_COUNT"), d.ping_count),
            whois_timeout_ms=_int(values.get("WHOIS_TIMEOUT"), d.whois_timeout_ms),
            traceroute_max_duration=float(max_duration) if max_duration else None,
            trust_proxy_hops=_int(values.get("TRUST_PROXY_HOPS"), d.trust_proxy_hops),
            commit_sha=values.get("GIT_COMMIT_SHA", d.commit_sha),
            rate_limit_window_s=_int(values.get("RATE_LIMIT_WINDOW"), d.rate_limit_window_s),
            rate_limit_max=_int(rate_max, 0) if rate_max else None,
        )

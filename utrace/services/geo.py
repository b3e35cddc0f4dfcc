# utrace/services/geo.py
import logging
from typing import Any, Optional

import geoip2.database
import geoip2.errors

_LOG = logging.getLogger(__name__)

GEO_NOT_FOUND = "GeoIP lookup failed (IP not found in database or private range)."
ASN_NOT_FOUND = "ASN lookup failed (IP not found in database or private range)."


def _compact(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None}


class GeoLookup:
    """
    Read-only GeoLite2 City + ASN lookups. Opened once at application
    startup, closed at shutdown, and handed to request handlers.
    """

    def __init__(self, city_db: str, asn_db: str):
        self.city_db = city_db
        self.asn_db = asn_db
        self._city: Optional[geoip2.database.Reader] = None
        self._asn: Optional[geoip2.database.Reader] = None

    def open(self) -> "GeoLookup":
        if self._city is not None and self._asn is not None:
            return self
        _LOG.info("Loading MaxMind databases (city=%s, asn=%s)", self.city_db, self.asn_db)
        self._city = geoip2.database.Reader(self.city_db)
        try:
            self._asn = geoip2.database.Reader(self.asn_db)
        except Exception:
            self._city.close()
            self._city = None
            raise
        _LOG.info("MaxMind databases loaded")
        return self

    def close(self) -> None:
        for reader in (self._city, self._asn):
            if reader is not None:
                reader.close()
        self._city = self._asn = None

    @property
    def is_open(self) -> bool:
        return self._city is not None and self._asn is not None

    def _require_open(self) -> None:
        if not self.is_open:
            raise RuntimeError("GeoLookup used before open()")

    def city(self, ip: str) -> dict[str, Any]:
        self._require_open()
        try:
            r = self._city.city(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError) as e:
            _LOG.warning("MaxMind city lookup failed for %s: %s", ip, e)
            return {"error": GEO_NOT_FOUND}
        return _compact({
            "city": r.city.names.get("en"),
            "region": r.subdivisions.most_specific.iso_code,
            "country": r.country.iso_code,
            "countryName": r.country.names.get("en"),
            "postalCode": r.postal.code,
            "latitude": r.location.latitude,
            "longitude": r.location.longitude,
            "timezone": r.location.time_zone,
        })

    def asn(self, ip: str) -> dict[str, Any]:
        self._require_open()
        try:
            r = self._asn.asn(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError) as e:
            _LOG.warning("MaxMind ASN lookup failed for %s: %s", ip, e)
            return {"error": ASN_NOT_FOUND}
        return _compact({
            "number": r.autonomous_system_number,
            "organization": r.autonomous_system_organization,
        })

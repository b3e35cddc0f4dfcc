# utrace/services/tls.py
#
# The handshake is made without verification so that expired or untrusted
# certificates can still be reported; `openssl x509` decodes what the peer
# sent.
import asyncio
import logging
import re
import shutil
import ssl
from datetime import datetime, timezone
from typing import Any, Optional

from utrace.errors import CommandError, LookupServiceError
from utrace.services.commands import run_command

_LOG = logging.getLogger(__name__)

VALID = "Valid"
INVALID = "Invalid (Expired or Not Yet Valid)"
UNKNOWN = "Could not determine validity"

X509_ARGS = ["x509", "-noout", "-subject", "-issuer", "-dates", "-ext", "subjectAltName", "-nameopt", "oneline"]

_FIELD = re.compile(r"^(subject|issuer|notBefore|notAfter)\s*=\s*(.*)$")
_RDN_SEP = re.compile(r"\s*=\s*")


class TlsError(LookupServiceError):
    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.details = details


def parse_x509_text(text: str) -> dict[str, Any]:
    """
    `openssl x509 -subject -issuer -dates -ext subjectAltName` output ->
    {"subject", "issuer", "notBefore", "notAfter", "subjectAltNames"}.
    """
    cert: dict[str, Any] = {"subjectAltNames": []}
    lines = text.splitlines()
    for i, line in enumerate(lines):
        line = line.strip()
        m = _FIELD.match(line)
        if m:
            key, value = m.groups()
            if key in ("subject", "issuer"):
                value = _RDN_SEP.sub("=", value)
            cert[key] = value
        elif line.startswith("X509v3 Subject Alternative Name") and i + 1 < len(lines):
            cert["subjectAltNames"] = [
                n.strip()[len("DNS:"):] for n in lines[i + 1].split(",") if n.strip().startswith("DNS:")
            ]
    return cert


def _cert_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(ssl.cert_time_to_seconds(value), tz=timezone.utc)
    except ValueError:
        _LOG.warning("Unparseable certificate date %r", value)
        return None


def summarize_certificate(cert: dict[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    valid_from = _cert_time(cert.get("notBefore"))
    valid_to = _cert_time(cert.get("notAfter"))

    if valid_from and valid_to:
        validity = VALID if valid_from <= now <= valid_to else INVALID
    else:
        validity = UNKNOWN

    return {
        "issuer": cert.get("issuer"),
        "subject": cert.get("subject"),
        "validFrom": valid_from.isoformat() if valid_from else None,
        "validTo": valid_to.isoformat() if valid_to else None,
        "validity": validity,
        "subjectAltNames": cert.get("subjectAltNames", []),
    }


def evaluate(certificate: dict[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    score = 0
    notes = []
    if certificate.get("validity") == VALID:
        score += 5
        notes.append("Certificate is currently valid.")
        days = (datetime.fromisoformat(certificate["validTo"]) - now).days
        if days < 30:
            score -= 2
            notes.append(f"Warning: Certificate expires in {days} days.")
        else:
            score += 2
            notes.append(f"Certificate expires in {days} days.")
    else:
        notes.append("Certificate is not valid.")
    return {"score": max(0, min(10, score)), "summary": " ".join(notes)}


class TlsInspector:
    def __init__(self, port: int = 443, timeout: float = 10.0, openssl_bin: str = "openssl"):
        self.port = port
        self.timeout = timeout
        self.openssl_bin = shutil.which(openssl_bin) or openssl_bin

    async def fetch_certificate(self, domain: str) -> bytes:
        """DER bytes of the peer certificate, whether or not it verifies."""
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        try:
            _reader, writer = await asyncio.wait_for(
                asyncio.open_connection(domain, self.port, ssl=ctx, server_hostname=domain),
                timeout=self.timeout,
            )
        except ssl.SSLError as e:
            raise TlsError(f"No SSL certificate found or SSL handshake failed for domain: {domain}", str(e)) from e
        except asyncio.TimeoutError as e:
            raise TlsError(f"Could not connect to domain: {domain}", "connection timed out") from e
        except OSError as e:
            raise TlsError(f"Could not connect to domain: {domain}", str(e)) from e

        try:
            der = writer.get_extra_info("ssl_object").getpeercert(binary_form=True)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ssl.SSLError, OSError) as e:
                _LOG.debug("Unclean TLS shutdown for %s: %s", domain, e)
        if not der:
            raise TlsError(f"No certificate information received for domain: {domain}")
        return der

    async def decode(self, der: bytes) -> dict[str, Any]:
        pem = ssl.DER_cert_to_PEM_cert(der).encode("ascii")
        try:
            res = await run_command(self.openssl_bin, X509_ARGS, timeout=self.timeout, stdin=pem)
        except CommandError as e:
            raise TlsError("Could not parse certificate.", e.stderr.strip() or str(e)) from e
        return parse_x509_text(res.stdout)

    async def check(self, domain: str) -> dict[str, Any]:
        cert = await self.decode(await self.fetch_certificate(domain))
        certificate = summarize_certificate(cert)
        _LOG.debug("Certificate for %s: %s", domain, certificate)
        return {
            "domain": domain,
            "certificate": certificate,
            "evaluation": evaluate(certificate),
        }

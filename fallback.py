"""Country pickers for IPs that match no free Proton VPN prefix.

``/dc`` never reports the classifier's ``XX`` for a non-match; it asks one of
these instead. ``random`` reproduces the deployed handle service, ``unknown``
is the deterministic choice, ``vpnapi`` asks vpnapi.io for the real country.
"""
import logging, os, random
from functools import lru_cache

import requests

logger = logging.getLogger(__name__)

FALLBACK_COUNTRIES = ("US", "UK", "CA", "DE", "AE", "SA")
UNKNOWN_COUNTRY = "XX"


class RandomCountry:
    name = "random"

    def __init__(self, countries=FALLBACK_COUNTRIES, rng=None):
        self.countries = tuple(countries)
        self.rng = rng or random.Random()

    def country_for(self, ip: str) -> str:
        return self.rng.choice(self.countries)


class UnknownCountry:
    name = "unknown"

    def country_for(self, ip: str) -> str:
        return UNKNOWN_COUNTRY


class VpnApiError(Exception):
    pass


# Only successful answers are memoised; failures raise.
@lru_cache(maxsize=2048)
def _vpnapi_country(ip, key):
    try:
        r = requests.get(f"https://vpnapi.io/api/{ip}", params={"key": key}, timeout=5)
    except requests.RequestException as exc:
        raise VpnApiError(f"vpnapi.io lookup failed for {ip}: {exc}") from exc
    if r.status_code != 200:
        raise VpnApiError(f"vpnapi.io returned {r.status_code} for {ip}")
    try:
        data = r.json()
    except ValueError as exc:
        raise VpnApiError(f"vpnapi.io sent invalid JSON for {ip}") from exc
    return (data.get("location") or {}).get("country_code") or None


class VpnApiCountry:
    name = "vpnapi"

    def __init__(self, api_key=None):
        self.api_key = (api_key if api_key is not None else os.getenv("VPNAPI_IO_KEY", "")).strip()

    def country_for(self, ip: str) -> str:
        if not self.api_key:
            return UNKNOWN_COUNTRY
        try:
            return _vpnapi_country(ip, self.api_key) or UNKNOWN_COUNTRY
        except VpnApiError as exc:
            logger.warning("%s", exc)
            return UNKNOWN_COUNTRY


FALLBACKS = {
    RandomCountry.name: RandomCountry,
    UnknownCountry.name: UnknownCountry,
    VpnApiCountry.name: VpnApiCountry,
}


def make_fallback(name):
    name = (name or RandomCountry.name).strip().lower()
    try:
        return FALLBACKS[name]()
    except KeyError:
        raise ValueError(f"unknown SECONDARY_CLASSIFIER {name!r}, expected one of {sorted(FALLBACKS)}") from None

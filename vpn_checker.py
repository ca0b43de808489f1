import json, os
from dataclasses import dataclass
from types import MappingProxyType
from collections.abc import Mapping
from typing import Optional, Sequence

# Free Proton VPN exit prefixes (2024), grouped by country bucket.
FREE_PROTON_VPN = {
    "NL": ["185.159.", "185.207.", "146.70.", "195.178.",
           "194.110.", "193.105.", "188.214.", "176.119.",
           "178.21.", "185.216.", "194.145.", "194.26."],
    "JP": ["45.142.", "45.86.", "46.166.", "46.182.",
           "46.226.", "5.252.", "5.253.", "5.254.",
           "5.255.", "64.120.", "65.108.", "77.83."],
    "US": ["209.58.", "212.102.", "23.105.", "31.171.",
           "80.94.", "82.102.", "83.97.", "89.147.",
           "91.108.", "94.131.", "45.14.", "45.15."],
    "OTHER": ["78.142.", "85.239.", "91.92.", "95.214.",
              "185.153.", "185.195.", "45.134.", "45.135."],
}

COUNTRY_NAMES = {
    "PK": "Pakistan", "US": "USA", "NL": "Netherlands",
    "JP": "Japan", "DE": "Germany", "CA": "Canada",
    "UK": "UK", "IN": "India", "XX": "Unknown",
}

SAMPLE_IPS = [
    "185.159.156.1",  # NL
    "45.142.178.1",   # JP
    "209.58.123.1",   # US
    "110.235.123.1",  # ordinary PK address
    "8.8.8.8",
]


def country_name(code: str) -> str:
    return COUNTRY_NAMES.get(code, code)


class PrefixTable(Mapping):
    """Read-only, ordered country -> prefixes table.

    Iteration order is the match order, so the first bucket listed wins when
    two buckets carry overlapping prefixes.
    """

    def __init__(self, buckets: Mapping[str, Sequence[str]]):
        self._buckets = MappingProxyType({
            str(country): tuple(p for p in prefixes if isinstance(p, str))
            for country, prefixes in buckets.items()
        })

    def __getitem__(self, country):
        return self._buckets[country]

    def __iter__(self):
        return iter(self._buckets)

    def __len__(self):
        return len(self._buckets)

    @classmethod
    def from_json(cls, path):
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"prefix table in {path} must be a JSON object")
        return cls({k: v for k, v in data.items() if isinstance(v, list)})


DEFAULT_TABLE = PrefixTable(FREE_PROTON_VPN)


def load_prefix_table(path=None) -> PrefixTable:
    path = (path or os.getenv("PREFIX_TABLE_PATH", "")).strip()
    if not path:
        return DEFAULT_TABLE
    if not os.path.exists(path):
        raise FileNotFoundError(f"prefix table not found: {path}")
    return PrefixTable.from_json(path)


@dataclass(frozen=True)
class ClassificationResult:
    is_match: bool
    country: str
    server_type: str
    confidence: str
    matched_prefix: Optional[str] = None

    def as_dict(self):
        out = {
            "isProton": self.is_match,
            "country": self.country,
            "serverType": self.server_type,
            "confidence": self.confidence,
        }
        if self.matched_prefix is not None:
            out["matchedRange"] = self.matched_prefix
        return out


NO_MATCH = ClassificationResult(is_match=False, country="XX", server_type="none", confidence="low")


class ProtonClassifier:
    def __init__(self, table: PrefixTable = DEFAULT_TABLE):
        self.table = table

    def classify(self, ip: str) -> ClassificationResult:
        ip = ip.strip()
        for country, prefixes in self.table.items():
            for prefix in prefixes:
                if ip.startswith(prefix):
                    return ClassificationResult(is_match=True, country=country, server_type="free",
                                                confidence="high", matched_prefix=prefix)
        return NO_MATCH

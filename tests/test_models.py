from __future__ import annotations

from models import DetectionCache, DetectionRecord, db


def _payload(vpn_type, isocode="NL"):
    return {"vpn_type": vpn_type, "isocode": isocode}


def test_repeat_ip_overwrites(app) -> None:
    cache = DetectionCache()
    with app.app_context():
        cache.record("1.2.3.4", _payload("free-proton"))
        cache.record("1.2.3.4", _payload("none", "US"))

        assert cache.count() == {"total": 1, "matched": 0}
        assert cache.get("1.2.3.4").payload["isocode"] == "US"
        assert db.session.query(DetectionRecord).count() == 1


def test_counts_distinct_and_matched(app) -> None:
    cache = DetectionCache()
    with app.app_context():
        assert cache.count() == {"total": 0, "matched": 0}

        cache.record("185.159.1.1", _payload("free-proton"))
        cache.record("45.142.1.1", _payload("free-proton", "JP"))
        cache.record("8.8.8.8", _payload("none", "DE"))

        assert cache.count() == {"total": 3, "matched": 2}


def test_record_as_dict(app) -> None:
    cache = DetectionCache()
    with app.app_context():
        row = cache.record("8.8.8.8", _payload("none", "CA")).as_dict()

    assert row["ip"] == "8.8.8.8"
    assert row["vpn_type"] == "none"
    assert row["payload"]["isocode"] == "CA"
    assert row["updated_at"].endswith("Z")

import threading
from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

db = SQLAlchemy()

FREE_PROTON = "free-proton"

class DetectionRecord(db.Model):
    ip = db.Column(db.Text, primary_key=True)
    vpn_type = db.Column(db.String(32), index=True)
    payload = db.Column(db.JSON)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def as_dict(self):
        return {
            "ip": self.ip,
            "vpn_type": self.vpn_type,
            "payload": self.payload,
            "updated_at": self.updated_at.isoformat() + "Z" if self.updated_at else None,
        }


class DetectionCache:
    """Latest /dc result per IP. Rows are overwritten, never expired."""

    def __init__(self):
        self._lock = threading.Lock()

    def record(self, ip, payload):
        with self._lock:
            row = db.session.get(DetectionRecord, ip)
            if row is None:
                row = DetectionRecord(ip=ip)
                db.session.add(row)
            row.vpn_type = payload.get("vpn_type")
            row.payload = payload
            row.updated_at = datetime.utcnow()
            db.session.commit()
        return row

    def get(self, ip):
        return db.session.get(DetectionRecord, ip)

    def count(self):
        with self._lock:
            total = db.session.query(DetectionRecord).count()
            matched = db.session.query(DetectionRecord).filter(DetectionRecord.vpn_type == FREE_PROTON).count()
            # end the read while holding the lock; in-memory SQLite shares one connection
            db.session.rollback()
        return {"total": total, "matched": matched}

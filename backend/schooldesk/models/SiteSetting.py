from datetime import datetime
from schooldesk.extensions import db

class SiteSetting(db.Model):
    __tablename__ = 'site_settings'

    id = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def get_value(cls, key, default=None):
        row = db.session.get(cls, key)
        if row is None or row.value in (None, ""):
            return default
        return row.value

    @classmethod
    def set_value(cls, key, value):
        row = db.session.get(cls, key)
        if row is None:
            row = cls(id=key, value=value)
            db.session.add(row)
        else:
            row.value = value
        return row

from flask_sqlalchemy import SQLAlchemy
from datetime_utils import get_current_timestamp

db = SQLAlchemy()

class StorageEntry(db.Model):
    __tablename__ = "storage_entries"

    key = db.Column(db.String(200), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    revision = db.Column(db.Integer, nullable=False, default=0)  # bumped on every write
    updated_at = db.Column(db.BigInteger, nullable=False, default=get_current_timestamp, onupdate=get_current_timestamp)

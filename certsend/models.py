from __future__ import annotations

from sqlalchemy.orm import validates

from .app import db
from .shared.passwords import hash_password, check_password
from .shared.statuses import PENDING, PERSISTED_STATUSES

NOT_AVAILABLE = "N/A"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255))
    full_name = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("ix_users_email_lower", db.func.lower(email), unique=True),
    )

    @validates("email")
    def lower_email(self, key, value):  # pragma: no cover - simple normalizer
        return value.lower()

    def set_password(self, plain: str) -> None:
        self.password_hash = hash_password(plain)

    def check_password(self, plain: str) -> bool:
        if not self.password_hash:
            return False
        return check_password(plain, self.password_hash)


class Recipient(db.Model):
    __tablename__ = "recipients"

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False, default=NOT_AVAILABLE)
    age = db.Column(db.Integer, nullable=False, default=0)
    blood_group = db.Column(db.String(16), nullable=False, default=NOT_AVAILABLE)
    gender = db.Column(db.String(32), nullable=False, default=NOT_AVAILABLE)
    job = db.Column(db.String(255), nullable=False, default=NOT_AVAILABLE)
    area = db.Column(db.String(255), nullable=False, default=NOT_AVAILABLE)
    whatsapp_number = db.Column(db.String(64), nullable=False, default=NOT_AVAILABLE)
    email_address = db.Column(db.String(255), nullable=False, default=NOT_AVAILABLE)
    registered_at = db.Column(db.String(64), nullable=False, default=NOT_AVAILABLE)
    checked_in_at = db.Column(db.String(64), nullable=False, default=NOT_AVAILABLE)
    status = db.Column(
        db.String(16), nullable=False, default=PENDING, server_default=PENDING
    )
    download_link = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    @validates("status")
    def check_status(self, key, value):
        if value not in PERSISTED_STATUSES:
            raise ValueError(f"Status {value!r} cannot be persisted")
        return value

    @property
    def has_link(self) -> bool:
        return bool(self.download_link)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fullName": self.full_name,
            "age": self.age,
            "bloodGroup": self.blood_group,
            "gender": self.gender,
            "job": self.job,
            "area": self.area,
            "whatsappNumber": self.whatsapp_number,
            "emailAddress": self.email_address,
            "registeredAt": self.registered_at,
            "checkedInAt": self.checked_in_at,
            "status": self.status,
            "downloadLink": self.download_link,
        }

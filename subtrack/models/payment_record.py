# subtrack/models/payment_record.py
from ..extensions import db, BigID

PAID = "PAID"
PENDING = "PENDING"
UNPAID = "UNPAID"
CANCELLED = "CANCELLED"

BACKFILL_NOTE = "System Backfilled"


class PaymentRecord(db.Model):
    __tablename__ = "payment_record"
    __table_args__ = (
        db.UniqueConstraint("subscription_id", "billing_date", name="ux_payment_sub_date"),
    )

    id = db.Column(BigID, primary_key=True, autoincrement=True)
    subscription_id = db.Column(
        BigID, db.ForeignKey("subscription.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(BigID, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)

    billing_date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False)
    status = db.Column(
        db.Enum(PAID, PENDING, UNPAID, CANCELLED, name="payment_status"),
        nullable=False,
        server_default=PENDING,
    )
    note = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    subscription = db.relationship(
        "Subscription",
        backref=db.backref("payment_records", cascade="all, delete-orphan"),
    )

    def __repr__(self):
        return f"<PaymentRecord id={self.id} sub_id={self.subscription_id} date={self.billing_date} {self.status}>"

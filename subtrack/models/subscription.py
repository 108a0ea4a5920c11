# subtrack/models/subscription.py
from ..extensions import db, BigID

class Subscription(db.Model):
    __tablename__ = "subscription"

    id = db.Column(BigID, primary_key=True, autoincrement=True)
    user_id = db.Column(BigID, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(80))

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, server_default="CNY")

    # stored as entered; read through BillingCycle.parse / SubscriptionStatus.parse
    billing_cycle = db.Column(db.String(16), nullable=False, server_default="MONTHLY")
    status = db.Column(db.String(16), nullable=False, server_default="ACTIVE")

    start_date = db.Column(db.Date, nullable=False)
    next_payment = db.Column(db.Date, nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("subscriptions", passive_deletes=True))

    def __repr__(self):
        return f"<Subscription id={self.id} user_id={self.user_id} name={self.name!r} cycle={self.billing_cycle}>"

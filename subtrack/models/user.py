from ..extensions import db, BigID

class User(db.Model):
    __tablename__ = "user"

    id = db.Column(BigID, primary_key=True, autoincrement=True)
    email = db.Column(db.String(190), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120))
    # display currency for analytics; projections and totals are expressed in it
    currency = db.Column(db.String(8), nullable=False, server_default="CNY")

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self):
        return f"<User id={self.id} email={self.email!r} currency={self.currency}>"

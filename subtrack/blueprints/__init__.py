from flask import Flask


def register_blueprints(app: Flask):
    from .users import bp as users_bp
    from .subscriptions import bp as subscriptions_bp
    from .finance import bp as finance_bp

    app.register_blueprint(users_bp,          url_prefix="/api/v1")
    app.register_blueprint(subscriptions_bp,  url_prefix="/api/v1")
    app.register_blueprint(finance_bp,        url_prefix="/api/v1")

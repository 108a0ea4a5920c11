from subtrack import create_app
from subtrack.extensions import db

app = create_app()

@app.get("/db-check")
def db_check():
    from sqlalchemy import text
    try:
        res = db.session.execute(text("SELECT 1 AS ok")).mappings().first()
        return {"connected": bool(res["ok"]), "uri": db.engine.url.render_as_string(hide_password=True)}
    except Exception as e:
        return {"error": str(e)}, 500

if __name__ == "__main__":
    app.run(debug=True)

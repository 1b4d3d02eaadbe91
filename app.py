# app.py - auto repair shop portal entry point
import os

from dotenv import load_dotenv

load_dotenv()

from shop_core import create_app  # noqa: E402

# ✅ Explicitly get FLASK_ENV, default to 'production'
env = os.getenv('FLASK_ENV', 'production')

app = create_app(env)


if __name__ == '__main__':
    with app.app_context():
        from shop_core.extensions import db
        db.create_all()
    app.run(debug=app.config.get('DEBUG', False))

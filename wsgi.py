"""
WSGI entry point for the BIP47 Terminal
"""
from dotenv import load_dotenv

load_dotenv()

from bip47_terminal.factory import create_app  # noqa: E402

app = create_app()

# Gunicorn/uWSGI compatibility
application = app

if __name__ == "__main__":
    cfg = app.config["APP_CONFIG"]
    print("\n🟢 BIP47 Terminal Server running!")
    print(f"→ http://localhost:{cfg['APP_PORT']}")
    print(f"→ Callback: {cfg['CALLBACK_URL']}\n")
    app.run(host=cfg["APP_HOST"], port=cfg["APP_PORT"], debug=cfg["FLASK_DEBUG"], threaded=True)

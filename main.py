import os

from ecommerce_api.main import create_app

# WSGI para gunicorn/render
app = create_app()

if __name__ == "__main__":
    # execução local
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=True)

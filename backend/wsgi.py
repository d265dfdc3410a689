# backend/wsgi.py
# FLASK_APP=wsgi.py  (run from the backend directory)
from backoffice import create_app

app = create_app()

# backend/wsgi.py
from firelynx import create_app

app = create_app()

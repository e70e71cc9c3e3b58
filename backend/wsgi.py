# backend/wsgi.py
from haulbook import create_app

app = create_app()

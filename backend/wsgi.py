# backend/wsgi.py
from appointly import create_app

app = create_app()

# backend/wsgi.py
from salonportal import create_app

app = create_app()

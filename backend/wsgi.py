# backend/wsgi.py
from eventpay import create_app

app = create_app()

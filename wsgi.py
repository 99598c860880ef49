# wsgi.py
from store_pos import create_app

# api base
application = create_app()

"""
Flask extensions initialization.
Extensions are initialized here and then initialized with the app in app.py.
"""

from flask_mail import Mail

# Outgoing mail (reservation codes, availability notices)
mail = Mail()

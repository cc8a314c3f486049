"""
TOTP API PACKAGE

Flask backend exposing TOTP enrolment and verification with replay
protection. Use create_app() to build the application.
"""

from .app import create_app

__all__ = ['create_app']

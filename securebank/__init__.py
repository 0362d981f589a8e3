"""
SecureBank

Session-authenticated banking backend: signup and login with server-side
sessions, checking and savings accounts, and funding from cards or bank
accounts over an integer-cent ledger.
"""

__version__ = "1.0.0"

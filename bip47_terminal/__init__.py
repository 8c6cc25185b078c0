"""BIP47 Terminal: Auth47 payment-code authentication, Paynym explorer and guestbook."""

__version__ = "1.0.0"

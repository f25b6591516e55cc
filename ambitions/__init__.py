"""Goal (ambition) tracking service with an approval workflow and laddering."""

__version__ = "0.1.0"

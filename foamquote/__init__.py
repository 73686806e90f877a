"""
Foam quote pricing core.

Pricebook validation, material selection, price-rule evaluation and
per-quote facts tracking. Pure computation — the HTTP layer in main.py
is a thin adapter over these modules.
"""

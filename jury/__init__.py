"""
TheJury Polling Service
=======================

FastAPI backend for a hosted polling/survey product.

Features:
- Poll creation and management (multi-question, scheduled, password protected)
- Authenticated and fingerprinted anonymous voting
- Live presentation mode with WebSocket updates
- Embeddable widgets and QR codes
- Tiered subscription gating (Stripe billing)
- Webhooks, API keys, custom domains, A/B experiments

Storage, uniqueness and random bucketing are delegated to Supabase.
"""

__version__ = "1.0.0"
__author__ = "TheJury Team"

"""
Utility modules for TheJury: tiers and feature gating, rate limiting,
results aggregation, webhook delivery, DNS verification and friends.
"""

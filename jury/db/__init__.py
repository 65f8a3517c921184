"""
Supabase access layer.

Thin query helpers on top of the supabase-py client. Storage owns
uniqueness (votes per identity) and random bucketing (assign_variant RPC).
"""

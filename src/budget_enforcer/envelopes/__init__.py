"""
Envelope Module - spending buckets, pacing status, purchases and shuffles

This module implements the day-to-day budget mechanics:
- Pacing status of an envelope against a straight-line spend
- Simulate / confirm / cancel flow for a purchase
- Shuffles that move unspent allocation into an envelope that ran short
"""

"""
Bills Module - recurring obligations and the envelope that funds them

Tracks known monthly bills, a cushion on top of them, and how much each
paycheck should put aside to reach and keep that target.
"""

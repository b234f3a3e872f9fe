"""
Period Module - pay-aligned budgeting windows

Calendar arithmetic for weekly, biweekly, semimonthly and monthly pay
schedules, plus starting and rolling over periods from saved plans.
"""

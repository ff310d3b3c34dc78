"""
InnoAccess API - live workshops, reminders and course payments.
"""

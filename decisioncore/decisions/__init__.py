"""
Decision Cards — lifecycle, ownership, audit trail and notifications.
"""

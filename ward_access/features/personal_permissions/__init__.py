"""
Personal permission delegation.

A staff member grants peers of a compatible role limited rights over
resources they own (a doctor's prescriptions, a nurse's tasks). Profiles
are independent of administrative overrides.
"""

"""
In-app notifications for staff.

Reviewers are told when an access request joins their queue and requesters
are told when it is resolved.
"""

"""
Access request workflow.

A restricted user asks a permission manager to lift a feature restriction;
the request moves from pending to approved or rejected exactly once.
"""

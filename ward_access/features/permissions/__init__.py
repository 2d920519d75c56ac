"""
Permission management feature module.

Role matrix baselines, per-user overrides with feature restrictions, the
permission-manager registry and assignment policies. Resolution is pure and
reads an ``AccessSnapshot`` loaded once per request.
"""

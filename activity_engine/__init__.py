"""
GitLab activity scoring and series aggregation engine.
"""

"""Plant operations dashboard: role-based mutation gate with deferred approval."""

"""daydone - work-hour tracking with task reconciliation and progress analytics."""

"""Alert rule evaluation and notification delivery engine."""

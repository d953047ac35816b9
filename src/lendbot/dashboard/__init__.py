"""Read-only status API served alongside the scheduler."""

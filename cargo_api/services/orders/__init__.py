"""Order numbering, lifecycle rules and audit trail."""

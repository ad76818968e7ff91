"""Core engine: record rules, detection, workload and recommendations."""

"""Engine configuration loading."""

"""Operation planning and execution."""

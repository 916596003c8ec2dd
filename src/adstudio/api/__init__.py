"""HTTP API for the AdStudio orchestration core."""

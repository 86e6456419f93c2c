"""Terminal front end: key input, rendering and the process entry point."""

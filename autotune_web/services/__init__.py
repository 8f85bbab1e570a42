"""Back-end services used by the results callback."""

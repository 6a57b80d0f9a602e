"""Services for the settings store."""

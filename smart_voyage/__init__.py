"""Smart Voyage - AI travel planning client state and API."""

"""Services Layer — lifecycle engine, box bridge and service wiring."""

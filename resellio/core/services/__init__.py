"""Domain services: scraping, Meta connection, pricing, captions, calendar, relay."""

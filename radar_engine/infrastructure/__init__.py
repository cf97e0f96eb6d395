"""Browser, authentication, CAPTCHA and scraping infrastructure."""

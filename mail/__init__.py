"""mail/ -- Outbound email delivery (aiosmtplib, or log-only in development)."""

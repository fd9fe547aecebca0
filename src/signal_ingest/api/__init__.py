"""HTTP service exposing the ingestion cycle, the webhook and stored signals."""

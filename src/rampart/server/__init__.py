"""Request dispatching, result negotiation, error sink, and ASGI sending."""

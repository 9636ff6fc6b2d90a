"""Command line interface (``storefront-events``)."""

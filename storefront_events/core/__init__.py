"""Core building blocks shared by every feature: settings, tenancy, database, errors."""

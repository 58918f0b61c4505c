"""Core domain: models, validators, exceptions and repository interfaces."""

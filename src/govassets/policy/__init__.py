"""Registry policy loaded from config/registry_policy.json."""

"""ordered-wheels: release the packages of a uv workspace in dependency order."""

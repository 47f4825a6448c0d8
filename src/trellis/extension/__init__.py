"""Extension point kinds, the extension point registry and parameter resolution."""

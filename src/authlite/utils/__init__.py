"""Small helpers shared by the authlite packages."""

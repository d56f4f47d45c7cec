"""Router modules for the Samsung TV bridge HTTP control surface."""

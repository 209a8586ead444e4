"""Controllers reconciling declarative IPAM objects."""

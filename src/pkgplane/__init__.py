"""pkgplane: package and revision lifecycle for a declarative control plane."""

__version__ = "0.1.0"

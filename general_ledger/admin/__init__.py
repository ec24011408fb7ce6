from . import coa, journal  # noqa: F401

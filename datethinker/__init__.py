# DateThinker venue discovery service.
# The Quart app lives in datethinker.src.app; importing the package does not create it.
__version__ = "0.1.0"

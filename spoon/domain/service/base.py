"""Base service class for domain services."""


class Service:
    """Base class for all domain services.

    Domain services hold logic that spans the account and identity
    entities rather than belonging to either one.
    """

    pass

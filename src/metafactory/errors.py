from __future__ import annotations


class MetaFactoryError(TypeError):
    """
    Base class for every misuse reported by metafactory.

    All of these are programmer errors: they are raised at the point of misuse
    and never caught or retried by the library itself.
    """

    pass


class InvalidMergeTargetError(MetaFactoryError):
    pass


class InvalidMergeSourceError(MetaFactoryError):
    pass


class UncloneableValueError(MetaFactoryError):
    pass


class CyclicValueError(UncloneableValueError):
    """
    Raised when clone or merge meets a container that is already on the active
    recursion path.
    """

    pass


class InvalidInitializerError(MetaFactoryError):
    pass


class InvalidFragmentError(MetaFactoryError):
    pass


class NotAFactoryError(MetaFactoryError):
    pass


class InvalidInstanceStateError(MetaFactoryError):
    pass


class InvalidLegacyConstructorError(MetaFactoryError):
    pass

from contextlib import contextmanager
import contextvars

from ..exceptions import NoDatabaseError

_default_gateway = contextvars.ContextVar("default_gateway", default=None)


def set_default_gateway(gateway):
    """
    Register ``gateway`` as the default for the current context.

    Returns a token that can be given to ``reset_default_gateway``.
    """
    return _default_gateway.set(gateway)


def reset_default_gateway(token):
    _default_gateway.reset(token)


def get_default_gateway():
    gateway = _default_gateway.get()
    if gateway is None:
        raise NoDatabaseError("No gateway given and no default gateway registered")
    return gateway


def resolve_gateway(gateway=None):
    if gateway is not None:
        return gateway
    return get_default_gateway()


@contextmanager
def use_gateway(gateway):
    token = _default_gateway.set(gateway)
    try:
        yield gateway
    finally:
        _default_gateway.reset(token)

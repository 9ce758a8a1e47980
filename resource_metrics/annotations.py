"""
Decorators that mark resource methods for instrumentation.

The decorators only attach metadata; the endpoint is returned unchanged so
the web framework still sees its original signature::

    @router.get("/orders")
    @timed
    @exception_metered(cause=LookupError)
    async def list_orders():
        ...
"""

import inspect
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type, TypeVar

from .errors import ConfigurationError

ANNOTATIONS_ATTR = "__resource_metrics__"

F = TypeVar("F", bound=Callable)


@dataclass(frozen=True)
class Timed:
    """Time every response write of the method."""
    name: str = ""
    absolute: bool = False


@dataclass(frozen=True)
class Metered:
    """Mark a meter for every response write of the method."""
    name: str = ""
    absolute: bool = False


@dataclass(frozen=True)
class ExceptionMetered:
    """Mark a meter whenever the method fails with ``cause``."""
    name: str = ""
    absolute: bool = False
    cause: Type[BaseException] = Exception


def _target(func: Callable) -> Callable:
    return getattr(func, "__func__", func)


def _annotate(func: Optional[F], annotation) -> Callable:
    def decorator(f: F) -> F:
        target = _target(f)
        annotations = dict(getattr(target, ANNOTATIONS_ATTR, {}))
        annotations[type(annotation)] = annotation
        setattr(target, ANNOTATIONS_ATTR, annotations)
        return f

    if func is not None:
        return decorator(func)
    return decorator


def timed(func: Optional[F] = None, *, name: str = "", absolute: bool = False):
    return _annotate(func, Timed(name=name, absolute=absolute))


def metered(func: Optional[F] = None, *, name: str = "", absolute: bool = False):
    return _annotate(func, Metered(name=name, absolute=absolute))


def exception_metered(func: Optional[F] = None, *, name: str = "", absolute: bool = False,
                      cause: Type[BaseException] = Exception):
    if not (inspect.isclass(cause) and issubclass(cause, BaseException)):
        raise ConfigurationError(
            "exception_metered cause must be an exception class",
            {"cause": repr(cause)}
        )
    return _annotate(func, ExceptionMetered(name=name, absolute=absolute, cause=cause))


def get_annotations(method: Callable) -> Dict[type, object]:
    """Return all metric annotations attached to ``method``."""
    return dict(getattr(_target(method), ANNOTATIONS_ATTR, {}))


def get_annotation(method: Callable, kind: type):
    return get_annotations(method).get(kind)


def is_annotation_present(method: Callable, kind: type) -> bool:
    return get_annotation(method, kind) is not None

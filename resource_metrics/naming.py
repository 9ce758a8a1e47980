"""
Metric name resolution for resource methods.
"""

from typing import Callable

from .registry import name


def _function(method: Callable) -> Callable:
    return getattr(method, "__func__", method)


def declaring_name(method: Callable) -> str:
    """Qualified name of the class (or module) that declares ``method``."""
    func = _function(method)
    scopes = [part for part in func.__qualname__.split(".")[:-1] if part != "<locals>"]
    return name(func.__module__, *scopes)


def method_name(method: Callable) -> str:
    return _function(method).__name__


def choose_name(explicit_name: str, absolute: bool, method: Callable, *suffixes: str) -> str:
    """Resolve the metric name for an annotated method.

    An absolute explicit name is used as-is, a relative one is prefixed with
    the declaring class, and without one the name is derived from the
    declaring class, the method name and ``suffixes``.
    """
    if explicit_name:
        if absolute:
            return explicit_name
        return name(declaring_name(method), explicit_name)
    return name(name(declaring_name(method), method_name(method)), *suffixes)

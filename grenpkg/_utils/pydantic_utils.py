from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


def empty_list_factory_of(_: type[T]) -> Callable[[], list[T]]:
    def _factory() -> list[T]:
        return []

    return _factory


def empty_dict_factory_of(_: type[T]) -> Callable[[], dict[str, T]]:
    def _factory() -> dict[str, T]:
        return {}

    return _factory

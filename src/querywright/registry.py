from __future__ import annotations

from typing import TYPE_CHECKING, Set

if TYPE_CHECKING:
    from querywright.base.interface import BaseInterface


class InterfaceRegistry:
    _singleton = None
    _interfaces: Set[BaseInterface]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    @classmethod
    def add(cls, interface: BaseInterface) -> None:
        instance = cls()
        instance._interfaces.add(interface)

    @classmethod
    def remove(cls, interface: BaseInterface) -> None:
        instance = cls()
        instance._interfaces.discard(interface)

    def __iter__(self):
        return iter(list(self._interfaces))

    def __len__(self) -> int:
        return len(self._interfaces)

    @classmethod
    def reset(cls):
        cls._singleton = super().__new__(cls)
        cls._singleton._interfaces = set()

#!/usr/bin/env python3

import logging

from cdeclgraph.model import Diagnostic, EnumItems, Global, Member
from cdeclgraph.registry import Registry

logger = logging.getLogger(__name__)


class ExtractState:
    """Accumulator threaded through every visit step of one extraction run."""

    def __init__(self, registry: Registry):
        self.registry = registry
        self.order: list[int] = []
        self.members: dict[int, list[Member]] = {}
        self.enum_items: dict[int, EnumItems] = {}
        self.irregular: set[int] = set()
        self.diagnostics: list[Diagnostic] = []
        # Declarations whose children are being visited right now.
        self.defining: set[int] = set()
        self._listed: set[int] = set()
        # Every first-sight listing, in order; never shrinks.
        self.added: list[int] = []
        # Records and enums with no definition; they are listed again when referenced.
        self.opaque: set[int] = set()

    def is_listed(self, global_: Global) -> bool:
        return global_.id in self._listed

    def add_global(self, global_: Global) -> None:
        """Append on first sight; a global listed earlier is replaced in place."""
        self.registry.update(global_)
        if global_.id not in self._listed:
            self._listed.add(global_.id)
            self.order.append(global_.id)
            self.added.append(global_.id)

    def remove_global(self, global_: Global) -> None:
        if global_.id in self._listed:
            self._listed.discard(global_.id)
            self.order.remove(global_.id)

    def set_members(self, global_: Global, members: list[Member], irregular: bool) -> None:
        self.members[global_.id] = members
        if irregular:
            self.irregular.add(global_.id)
        else:
            self.irregular.discard(global_.id)

    def set_enum_items(self, global_: Global, items: EnumItems) -> None:
        self.enum_items[global_.id] = items

    def diagnose(self, diagnostic: Diagnostic) -> None:
        logger.warning("Skipping %s", diagnostic)
        self.diagnostics.append(diagnostic)

    def withdraw_since(self, mark: int, owner: Global) -> None:
        """Unlist every global first listed after `mark`, because `owner` was skipped.

        Nested definitions are poisoned with it; opaque records only leave the list.
        """
        for gid in self.added[mark:]:
            if gid not in self._listed:
                continue
            global_ = self.registry.globals[gid]
            if gid in self.opaque:
                self.remove_global(global_)
                continue
            self.registry.poison(global_)
            self.remove_global(global_)
            self.diagnose(
                Diagnostic(
                    name=str(global_.name),
                    location=getattr(global_, "location", None),
                    message=f"declared inside skipped {owner.name}",
                )
            )

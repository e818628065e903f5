"""
Read-mostly access to store, menu, resource and business-calendar records.

In production these records live in the tenant database behind the CRUD
layer; the core only needs the lookups below. Every lookup is scoped by
store_id so one tenant can never read another tenant's records.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from reservation_core.errors import NotFoundError
from reservation_core.schemas.menu_schema import Menu
from reservation_core.schemas.resource_schema import Resource
from reservation_core.schemas.store_schema import BusinessCalendarEntry, Store

logger = logging.getLogger(__name__)


class Catalog(ABC):
    """Collaborator interface for tenant configuration records."""

    @abstractmethod
    def get_store(self, store_id: int) -> Store:
        """Raises NotFoundError for unknown stores."""

    @abstractmethod
    def get_menu(self, store_id: int, menu_id: int) -> Menu:
        """Raises NotFoundError when the menu does not belong to the store."""

    @abstractmethod
    def get_resource(self, store_id: int, resource_id: int) -> Resource:
        """Raises NotFoundError when the resource does not belong to the store."""

    @abstractmethod
    def list_resources(self, store_id: int) -> list[Resource]:
        """All resources of a store, active or not."""

    @abstractmethod
    def get_calendar_entry(self, store_id: int, day: date) -> Optional[BusinessCalendarEntry]:
        """Override for ``day`` if one exists."""


class InMemoryCatalog(Catalog):
    """Dict-backed catalog used by tests and the console demo."""

    def __init__(self) -> None:
        self._stores: dict[int, Store] = {}
        self._menus: dict[int, Menu] = {}
        self._resources: dict[int, Resource] = {}
        self._calendar: dict[tuple[int, date], BusinessCalendarEntry] = {}
        self._lock = threading.Lock()

    def add_store(self, store: Store) -> Store:
        with self._lock:
            self._stores[store.id] = store
        return store

    def add_menu(self, menu: Menu) -> Menu:
        with self._lock:
            self._menus[menu.id] = menu
        return menu

    def add_resource(self, resource: Resource) -> Resource:
        with self._lock:
            self._resources[resource.id] = resource
        return resource

    def add_calendar_entry(self, entry: BusinessCalendarEntry) -> BusinessCalendarEntry:
        with self._lock:
            self._calendar[(entry.store_id, entry.date)] = entry
        return entry

    def get_store(self, store_id: int) -> Store:
        store = self._stores.get(store_id)
        if store is None:
            raise NotFoundError(f"Store {store_id} not found", details={"store_id": store_id})
        return store

    def get_menu(self, store_id: int, menu_id: int) -> Menu:
        menu = self._menus.get(menu_id)
        if menu is None or menu.store_id != store_id:
            raise NotFoundError(
                f"Menu {menu_id} not found in store {store_id}",
                details={"store_id": store_id, "menu_id": menu_id},
            )
        return menu

    def get_resource(self, store_id: int, resource_id: int) -> Resource:
        resource = self._resources.get(resource_id)
        if resource is None or resource.store_id != store_id:
            raise NotFoundError(
                f"Resource {resource_id} not found in store {store_id}",
                details={"store_id": store_id, "resource_id": resource_id},
            )
        return resource

    def list_resources(self, store_id: int) -> list[Resource]:
        return sorted(
            (r for r in self._resources.values() if r.store_id == store_id),
            key=lambda r: r.id,
        )

    def get_calendar_entry(self, store_id: int, day: date) -> Optional[BusinessCalendarEntry]:
        return self._calendar.get((store_id, day))

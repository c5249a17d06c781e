import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from src.reservations.overlap import find_conflicts
from src.reservations.schemas import (
    Bus, Reservation, ReservationKind, Route, TimeWindow
)


class BusCatalog(ABC):
    """Read access to buses and routes owned by other modules"""

    @abstractmethod
    def get_bus(self, bus_id: str) -> Optional[Bus]:
        ...

    @abstractmethod
    def get_route(self, route_id: str) -> Optional[Route]:
        ...


class ReservationRepository(ABC):
    """Record store for both reservation kinds"""

    @abstractmethod
    def add(self, reservation: Reservation) -> Reservation:
        ...

    @abstractmethod
    def get(self, reservation_id: str) -> Optional[Reservation]:
        ...

    @abstractmethod
    def save(self, reservation: Reservation) -> Reservation:
        ...

    @abstractmethod
    def find_overlapping(
        self,
        bus_id: str,
        window: TimeWindow,
        exclude_id: Optional[str] = None
    ) -> List[Reservation]:
        """Live reservations of either kind on the bus overlapping the window"""

    @abstractmethod
    def list_for_user(
        self,
        user_id: str,
        kind: Optional[ReservationKind] = None
    ) -> List[Reservation]:
        ...


class InMemoryBusCatalog(BusCatalog):

    def __init__(self, buses: Iterable[Bus] = (), routes: Iterable[Route] = ()):
        self.buses: Dict[str, Bus] = {bus.id: bus for bus in buses}
        self.routes: Dict[str, Route] = {route.id: route for route in routes}

    def add_bus(self, bus: Bus) -> Bus:
        self.buses[bus.id] = bus
        return bus

    def add_route(self, route: Route) -> Route:
        self.routes[route.id] = route
        return route

    def get_bus(self, bus_id: str) -> Optional[Bus]:
        return self.buses.get(bus_id)

    def get_route(self, route_id: str) -> Optional[Route]:
        return self.routes.get(route_id)


class InMemoryReservationRepository(ReservationRepository):
    """Dictionary-backed store; hands out copies so callers never share state"""

    def __init__(self):
        self._storage: Dict[str, Reservation] = {}
        self._lock = threading.Lock()

    def add(self, reservation: Reservation) -> Reservation:
        with self._lock:
            self._storage[reservation.id] = reservation.model_copy(deep=True)
        return reservation

    def get(self, reservation_id: str) -> Optional[Reservation]:
        with self._lock:
            reservation = self._storage.get(reservation_id)
            return reservation.model_copy(deep=True) if reservation else None

    def save(self, reservation: Reservation) -> Reservation:
        return self.add(reservation)

    def find_overlapping(
        self,
        bus_id: str,
        window: TimeWindow,
        exclude_id: Optional[str] = None
    ) -> List[Reservation]:
        with self._lock:
            on_bus = [
                r.model_copy(deep=True) for r in self._storage.values()
                if r.bus_id == bus_id
            ]
        return find_conflicts(on_bus, window, exclude_id=exclude_id)

    def list_for_user(
        self,
        user_id: str,
        kind: Optional[ReservationKind] = None
    ) -> List[Reservation]:
        with self._lock:
            reservations = [
                r.model_copy(deep=True) for r in self._storage.values()
                if r.user_id == user_id and (kind is None or r.kind == kind)
            ]
        return sorted(reservations, key=lambda r: r.created_at, reverse=True)

    def all(self) -> List[Reservation]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._storage.values()]

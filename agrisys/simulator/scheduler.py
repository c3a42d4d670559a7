from typing import List, Callable, Optional
from datetime import datetime, timedelta
import asyncio
import heapq
import logging

from ..utils.timeutils import utcnow

class SimulationEvent:
    def __init__(
        self,
        timestamp: datetime,
        event_type: str,
        callback: Callable[[datetime], None],
        interval: Optional[timedelta] = None
    ):
        self.timestamp = timestamp
        self.event_type = event_type
        self.callback = callback
        self.interval = interval

    def __lt__(self, other):
        return self.timestamp < other.timestamp

class PeriodicScheduler:
    """Cola de eventos ordenada por hora de disparo.

    Puede avanzarse en tiempo virtual (`run_until`), donde cada callback recibe
    la hora programada del evento como `now`, o en tiempo real (`run_forever`),
    donde recibe la hora del reloj y un retraso se salda con un único disparo.
    """
    def __init__(self, start_time: Optional[datetime] = None, clock: Callable[[], datetime] = utcnow):
        self.events: List[SimulationEvent] = []
        self.clock = clock
        self.current_time = start_time or clock()
        self.is_running = False
        self.logger = logging.getLogger(__name__)

    def add_event(
        self,
        event_type: str,
        callback: Callable[[datetime], None],
        delay: timedelta,
        interval: Optional[timedelta] = None
    ) -> None:
        """Añade un nuevo evento a la cola"""
        event_time = self.current_time + delay
        event = SimulationEvent(event_time, event_type, callback, interval)
        heapq.heappush(self.events, event)
        self.logger.debug(f"Evento {event_type} programado para {event_time}")

    def add_recurring_event(
        self,
        event_type: str,
        callback: Callable[[datetime], None],
        interval: timedelta
    ) -> None:
        """Añade un evento recurrente"""
        if interval <= timedelta(0):
            raise ValueError(f"Interval for {event_type} must be positive")
        self.add_event(event_type, callback, interval, interval)

    def remove_events(self, event_type: str) -> None:
        """Elimina todos los eventos de un tipo específico"""
        self.events = [e for e in self.events if e.event_type != event_type]
        heapq.heapify(self.events)

    def process_next_event(self, now: Optional[datetime] = None) -> bool:
        """Procesa el siguiente evento en la cola.

        En tiempo virtual `now` es la hora programada del evento. En tiempo real
        se pasa la hora del reloj: el callback la recibe y el siguiente disparo
        se programa desde ella, de modo que las ocurrencias perdidas no se
        recuperan en ráfaga.
        """
        if not self.events:
            return False

        event = heapq.heappop(self.events)
        fired_at = now if now is not None else event.timestamp
        self.current_time = fired_at

        try:
            event.callback(fired_at)
        except Exception as e:
            self.logger.error(f"Error procesando evento {event.event_type}: {str(e)}", exc_info=True)

        # Si es un evento recurrente, reprogramarlo
        if event.interval:
            new_event = SimulationEvent(
                fired_at + event.interval,
                event.event_type,
                event.callback,
                event.interval
            )
            heapq.heappush(self.events, new_event)

        return True

    def run_until(self, end_time: datetime) -> int:
        """Ejecuta en tiempo virtual todos los eventos con hora <= end_time"""
        self.is_running = True
        processed = 0
        while self.is_running and self.events and self.events[0].timestamp <= end_time:
            self.process_next_event()
            processed += 1
        self.current_time = max(self.current_time, end_time)
        return processed

    async def run_forever(self) -> None:
        """Ejecuta los eventos en tiempo real hasta que se llame a stop()"""
        self.is_running = True
        while self.is_running and self.events:
            now = self.clock()
            delay = (self.events[0].timestamp - now).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
                continue
            self.process_next_event(now)
            # Cede el control al bucle entre eventos atrasados
            await asyncio.sleep(0)

    def stop(self) -> None:
        """Detiene la simulación"""
        self.is_running = False

    def get_next_event_time(self) -> Optional[datetime]:
        """Obtiene el tiempo del próximo evento"""
        if self.events:
            return self.events[0].timestamp
        return None

    def clear_all_events(self) -> None:
        """Limpia todos los eventos"""
        self.events.clear()

    def get_event_count(self) -> int:
        """Obtiene el número total de eventos en cola"""
        return len(self.events)

    def get_events_by_type(self, event_type: str) -> List[SimulationEvent]:
        """Obtiene todos los eventos de un tipo específico"""
        return [e for e in self.events if e.event_type == event_type]

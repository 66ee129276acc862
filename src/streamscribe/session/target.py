"""EventTarget: destino dos eventos de uma sessao.

Combina a fila de eventos com o task dono (o caller). A sessao monitora o
dono: quando ele termina, a sessao termina junto.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from streamscribe.models.events import SessionEvent


class EventTarget:
    """Fila de eventos ligada ao ciclo de vida de um task.

    Args:
        owner: Task monitorado. Default: o task que cria o target.
    """

    def __init__(self, owner: asyncio.Task[object] | None = None) -> None:
        if owner is None:
            owner = asyncio.current_task()
        if owner is None:
            msg = "EventTarget precisa de um task dono (crie dentro de uma coroutine)"
            raise RuntimeError(msg)
        self._owner = owner
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._monitors: dict[
            Callable[[], None], Callable[[asyncio.Task[object]], None] | asyncio.Handle
        ] = {}

    @property
    def owner(self) -> asyncio.Task[object]:
        return self._owner

    def is_alive(self) -> bool:
        return not self._owner.done()

    def monitor(self, on_down: Callable[[], None]) -> None:
        """Registra callback chamado (uma vez) quando o dono termina.

        Se o dono ja terminou, o callback e agendado imediatamente.
        """
        if self._owner.done():
            self._monitors[on_down] = asyncio.get_running_loop().call_soon(on_down)
            return

        def _callback(_task: asyncio.Task[object]) -> None:
            on_down()

        self._monitors[on_down] = _callback
        self._owner.add_done_callback(_callback)

    def demonitor(self, on_down: Callable[[], None]) -> None:
        """Desfaz monitor(on_down): o callback nao sera mais chamado. Idempotente."""
        registered = self._monitors.pop(on_down, None)
        if isinstance(registered, asyncio.Handle):
            registered.cancel()
        elif registered is not None:
            self._owner.remove_done_callback(registered)

    def send(self, event: SessionEvent) -> None:
        self._events.put_nowait(event)

    async def receive(self, timeout: float | None = None) -> SessionEvent:
        """Aguarda o proximo evento.

        Raises:
            TimeoutError: Se nenhum evento chegar dentro de timeout.
        """
        if timeout is None:
            return await self._events.get()
        return await asyncio.wait_for(self._events.get(), timeout=timeout)

    def receive_nowait(self) -> SessionEvent:
        """Retorna o proximo evento sem esperar.

        Raises:
            asyncio.QueueEmpty: Se nao ha evento pendente.
        """
        return self._events.get_nowait()

    def pending(self) -> int:
        """Quantidade de eventos ainda nao consumidos."""
        return self._events.qsize()
